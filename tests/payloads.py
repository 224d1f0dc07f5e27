"""Payloads shaped like booking API responses."""

from typing import Any, Dict, Optional


def service_payload(service_id: str = "1", **overrides: Any) -> Dict[str, Any]:
    """Service as returned by the booking API."""
    payload: Dict[str, Any] = {
        "id": service_id,
        "name": "Basic Wash",
        "slug": "basic-wash",
        "description": "Essential exterior wash with soap and rinse",
        "price": 25,
        "duration": "30 min",
        "category": {"id": "wash", "name": "Wash Services", "slug": "wash"},
        "availability": {"mobile": True, "inShop": True},
        "rating": 4.2,
        "createdAt": "2024-01-01T00:00:00Z",
        "updatedAt": "2024-01-01T00:00:00Z",
    }
    payload.update(overrides)
    return payload


def client_payload(client_id: str = "client-1", email: Optional[str] = None) -> Dict[str, Any]:
    """Client as returned by the booking API."""
    return {
        "id": client_id,
        "name": "Sarah Johnson",
        "email": email or "sarah.johnson@example.com",
        "phone": "+1-555-0101",
        "membershipStatus": "premium",
        "loyaltyPoints": 1250,
        "walletBalance": 45.5,
    }


def vehicle_payload(vehicle_id: str = "vehicle-1", client_id: str = "client-1", **overrides: Any) -> Dict[str, Any]:
    """Vehicle as returned by the booking API."""
    payload: Dict[str, Any] = {
        "id": vehicle_id,
        "clientId": client_id,
        "make": "Tesla",
        "model": "Model 3",
        "year": 2022,
        "color": "White",
        "licensePlate": "ABC123",
        "isPrimary": True,
        "isActive": True,
        "createdAt": "2024-01-15T00:00:00Z",
        "updatedAt": "2024-01-15T00:00:00Z",
    }
    payload.update(overrides)
    return payload


def payment_method_payload(payment_id: str = "payment-1", client_id: str = "client-1", **overrides: Any) -> Dict[str, Any]:
    payload: Dict[str, Any] = {
        "id": payment_id,
        "clientId": client_id,
        "type": "card",
        "last4": "1234",
        "brand": "visa",
        "expiryDate": "12/27",
        "isDefault": False,
        "isActive": True,
    }
    payload.update(overrides)
    return payload


def address_payload(address_id: str = "address-1", client_id: str = "client-1", **overrides: Any) -> Dict[str, Any]:
    payload: Dict[str, Any] = {
        "id": address_id,
        "clientId": client_id,
        "type": "home",
        "street": "123 Main Street",
        "city": "San Francisco",
        "state": "CA",
        "zipCode": "94102",
        "country": "US",
        "isDefault": True,
    }
    payload.update(overrides)
    return payload
