"""
Repository interfaces (Abstract Base Classes).

Define the data-access contract for each entity family independent of where the
data comes from (mock data, the booking API, or a combination of both). Callers
only ever depend on these interfaces.
"""

from abc import ABC, abstractmethod
from typing import Any, Dict, Generic, List, Mapping, Optional, TypeVar, Union

from ..domain.entities import (
    AddressCreate,
    AddressUpdate,
    Client,
    ClientAddress,
    ClientCreate,
    ClientUpdate,
    MembershipStatus,
    PaymentMethod,
    PaymentMethodCreate,
    PaymentMethodUpdate,
    Service,
    ServiceCreate,
    ServiceFilters,
    ServiceUpdate,
    Vehicle,
    VehicleCreate,
    VehicleUpdate,
)
from ..domain.queries import PaginatedResult, QueryParams

T = TypeVar("T")
CreateT = TypeVar("CreateT")
UpdateT = TypeVar("UpdateT")

ParamsLike = Union[QueryParams, Mapping[str, Any], None]
Filters = Dict[str, Any]


class BaseRepository(ABC, Generic[T, CreateT, UpdateT]):
    """
    Generic repository contract shared by every entity family.

    ``find_by_id`` returns None for a missing entity, while ``update`` and
    ``delete`` raise NotFoundException. ``create`` and ``update`` validate their
    input before any I/O and raise ValidationException on bad data.
    """

    entity_name: str = "Entity"

    @abstractmethod
    async def find_all(self, params: ParamsLike = None) -> List[T]:
        """
        Find all entities matching the query parameters.

        Args:
            params: Filters, sort, pagination and includes (all optional)

        Returns:
            List of entities
        """
        pass

    @abstractmethod
    async def find_by_id(self, entity_id: str) -> Optional[T]:
        """
        Find one entity by id.

        Returns:
            The entity, or None when it does not exist
        """
        pass

    @abstractmethod
    async def find_one(self, filters: Filters) -> Optional[T]:
        """Return the first entity matching ``filters`` or None."""
        pass

    @abstractmethod
    async def find_many(self, filters: Filters) -> List[T]:
        pass

    @abstractmethod
    async def find_paginated(self, params: ParamsLike = None) -> PaginatedResult[T]:
        """
        Return one page of entities.

        Returns:
            PaginatedResult with ``len(data) <= limit``
        """
        pass

    @abstractmethod
    async def create(self, data: Union[CreateT, Mapping[str, Any]]) -> T:
        """
        Create a new entity.

        Raises:
            ValidationException: If the input is invalid
        """
        pass

    @abstractmethod
    async def update(self, entity_id: str, data: Union[UpdateT, Mapping[str, Any]]) -> T:
        """
        Apply a partial update.

        Raises:
            ValidationException: If the input is invalid
            NotFoundException: If no entity has this id
        """
        pass

    @abstractmethod
    async def delete(self, entity_id: str) -> bool:
        """
        Delete an entity.

        Raises:
            NotFoundException: If no entity has this id
        """
        pass

    @abstractmethod
    async def count(self, filters: Optional[Filters] = None) -> int:
        pass

    @abstractmethod
    async def exists(self, entity_id: str) -> bool:
        pass

    @abstractmethod
    async def create_many(self, items: List[Union[CreateT, Mapping[str, Any]]]) -> List[T]:
        """Create several entities; all items are validated before the first write."""
        pass

    @abstractmethod
    async def update_many(self, filters: Filters, data: Union[UpdateT, Mapping[str, Any]]) -> int:
        """
        Apply the same partial update to every entity matching ``filters``.

        The update is validated once, before the first write.

        Returns:
            Number of updated entities
        """
        pass

    @abstractmethod
    async def delete_many(self, filters: Filters) -> int:
        """
        Delete every entity matching ``filters``.

        Returns:
            Number of deleted entities
        """
        pass

    @abstractmethod
    def clear_cache(self) -> None:
        """Drop every cached read of this repository."""
        pass

    @abstractmethod
    async def refresh_cache(self) -> None:
        """Clear the cache and warm it with a fresh ``find_all``."""
        pass


class ServiceRepository(BaseRepository[Service, ServiceCreate, ServiceUpdate]):
    """Contract for car-wash services."""

    entity_name = "Service"

    @abstractmethod
    async def find_by_category(self, category_slug: str) -> List[Service]:
        pass

    @abstractmethod
    async def find_featured(self) -> List[Service]:
        pass

    @abstractmethod
    async def find_popular(self) -> List[Service]:
        pass

    @abstractmethod
    async def find_by_availability(self, kind: str) -> List[Service]:
        """
        Find services offered at a location kind.

        Args:
            kind: ``mobile`` or ``in_shop`` (``in-shop``/``inShop`` accepted)
        """
        pass

    @abstractmethod
    async def search(self, query: str) -> List[Service]:
        """Case-insensitive search over name, description, category and tags."""
        pass

    @abstractmethod
    async def find_with_filters(self, filters: Union[ServiceFilters, Mapping[str, Any]]) -> List[Service]:
        pass

    @abstractmethod
    async def find_related(self, service_id: str, limit: int = 3) -> List[Service]:
        """Services of the same category, excluding the service itself."""
        pass

    @abstractmethod
    async def get_average_rating(self, service_id: str) -> float:
        pass

    @abstractmethod
    async def get_booking_count(self, service_id: str) -> int:
        pass


class ClientRepository(BaseRepository[Client, ClientCreate, ClientUpdate]):
    """Contract for client accounts."""

    entity_name = "Client"

    @abstractmethod
    async def find_by_email(self, email: str) -> Optional[Client]:
        """Exact, case-insensitive e-mail lookup."""
        pass

    @abstractmethod
    async def find_by_phone(self, phone: str) -> Optional[Client]:
        pass

    @abstractmethod
    async def find_by_membership_status(self, status: Union[MembershipStatus, str]) -> List[Client]:
        pass

    @abstractmethod
    async def search(self, query: str, limit: Optional[int] = None) -> List[Client]:
        """Case-insensitive search over name, e-mail and phone."""
        pass

    @abstractmethod
    async def count_by_membership_status(self, status: Union[MembershipStatus, str]) -> int:
        pass

    # Vehicles

    @abstractmethod
    async def get_vehicles(self, client_id: str) -> List[Vehicle]:
        pass

    @abstractmethod
    async def add_vehicle(self, client_id: str, data: Union[VehicleCreate, Mapping[str, Any]]) -> Vehicle:
        """
        Register a vehicle for a client.

        Raises:
            ValidationException: If the input is invalid
            NotFoundException: If the client does not exist
        """
        pass

    @abstractmethod
    async def update_vehicle(self, vehicle_id: str, data: Union[VehicleUpdate, Mapping[str, Any]]) -> Vehicle:
        pass

    @abstractmethod
    async def delete_vehicle(self, vehicle_id: str) -> bool:
        pass

    # Payment methods

    @abstractmethod
    async def get_payment_methods(self, client_id: str) -> List[PaymentMethod]:
        pass

    @abstractmethod
    async def add_payment_method(
        self, client_id: str, data: Union[PaymentMethodCreate, Mapping[str, Any]]
    ) -> PaymentMethod:
        """Cards require ``last4``."""
        pass

    @abstractmethod
    async def update_payment_method(
        self, method_id: str, data: Union[PaymentMethodUpdate, Mapping[str, Any]]
    ) -> PaymentMethod:
        pass

    @abstractmethod
    async def delete_payment_method(self, method_id: str) -> bool:
        pass

    # Addresses

    @abstractmethod
    async def get_addresses(self, client_id: str) -> List[ClientAddress]:
        pass

    @abstractmethod
    async def add_address(self, client_id: str, data: Union[AddressCreate, Mapping[str, Any]]) -> ClientAddress:
        pass

    @abstractmethod
    async def update_address(
        self, address_id: str, data: Union[AddressUpdate, Mapping[str, Any]]
    ) -> ClientAddress:
        pass

    @abstractmethod
    async def delete_address(self, address_id: str) -> bool:
        pass
