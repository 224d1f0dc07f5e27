"""
Domain entities for the car-wash booking data layer.

Records exchanged with the booking API and the mock data source. Field names are
snake_case in Python and camelCase on the wire, matching the API payloads.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator
from pydantic.alias_generators import to_camel

# Loose e-mail check; the backend owns strict validation
EMAIL_PATTERN = r"^[^@\s]+@[^@\s]+\.[^@\s]+$"


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class CamelModel(BaseModel):
    """Base model accepting both camelCase (wire) and snake_case (Python) names."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        str_strip_whitespace=True,
    )

    def to_payload(self, exclude_unset: bool = False) -> dict:
        """Serialize to a JSON-ready dict using wire names."""
        return self.model_dump(mode="json", by_alias=True, exclude_unset=exclude_unset)


# ---- Services ----


class ServiceCategory(CamelModel):
    id: str
    name: str
    slug: str
    description: str = ""
    service_count: int = 0


class ServiceAvailability(CamelModel):
    mobile: bool = False
    in_shop: bool = False


class EstimatedTime(CamelModel):
    min: int = 30
    max: int = 60


class Service(CamelModel):
    """A bookable car-wash service."""

    id: str
    name: str
    slug: str
    description: str = ""
    short_description: str = ""
    price: float
    duration: str
    image: Optional[str] = None
    is_active: bool = True
    category: ServiceCategory
    featured: bool = False
    popular: bool = False
    availability: ServiceAvailability = Field(default_factory=ServiceAvailability)
    features: List[str] = Field(default_factory=list)
    tags: List[str] = Field(default_factory=list)
    rating: float = 0.0
    review_count: int = 0
    estimated_time: EstimatedTime = Field(default_factory=EstimatedTime)
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)


class ServiceCreate(CamelModel):
    """Input for creating a service. Duration is given in minutes."""

    name: str = Field(min_length=1, max_length=120)
    description: str = Field(min_length=1)
    price: float = Field(gt=0)
    duration: int = Field(gt=0, description="Duration in minutes")
    category: str = Field(min_length=1)
    featured: bool = False
    popular: bool = False
    availability: List[str] = Field(default_factory=list)
    images: List[str] = Field(default_factory=list)
    tags: List[str] = Field(default_factory=list)


class ServiceUpdate(CamelModel):
    """Partial update of a service; only provided fields are applied."""

    name: Optional[str] = Field(default=None, min_length=1, max_length=120)
    description: Optional[str] = Field(default=None, min_length=1)
    price: Optional[float] = Field(default=None, gt=0)
    duration: Optional[int] = Field(default=None, gt=0)
    category: Optional[str] = Field(default=None, min_length=1)
    featured: Optional[bool] = None
    popular: Optional[bool] = None
    availability: Optional[List[str]] = None
    images: Optional[List[str]] = None
    tags: Optional[List[str]] = None


class PriceRange(CamelModel):
    min: Optional[float] = None
    max: Optional[float] = None


class ServiceFilters(CamelModel):
    """Structured filter used by ``find_with_filters``."""

    category: Optional[str] = None
    featured: Optional[bool] = None
    popular: Optional[bool] = None
    availability: Optional[List[str]] = None
    price_range: Optional[PriceRange] = None
    search: Optional[str] = None


# ---- Clients ----


class MembershipStatus(str, Enum):
    """Membership tiers."""

    BASIC = "basic"
    PREMIUM = "premium"
    ELITE = "elite"


class Client(CamelModel):
    """A customer account."""

    id: str
    name: str
    email: str
    phone: str
    avatar: Optional[str] = None
    membership_status: MembershipStatus = MembershipStatus.BASIC
    member_since: Optional[datetime] = None
    loyalty_points: int = 0
    wallet_balance: float = 0.0
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)


class ClientCreate(CamelModel):
    name: str = Field(min_length=1, max_length=120)
    email: str = Field(pattern=EMAIL_PATTERN)
    phone: str = Field(min_length=1, max_length=32)
    avatar: Optional[str] = None
    membership_status: MembershipStatus = MembershipStatus.BASIC
    loyalty_points: int = Field(default=0, ge=0)
    wallet_balance: float = Field(default=0.0, ge=0)


class ClientUpdate(CamelModel):
    name: Optional[str] = Field(default=None, min_length=1, max_length=120)
    email: Optional[str] = Field(default=None, pattern=EMAIL_PATTERN)
    phone: Optional[str] = Field(default=None, min_length=1, max_length=32)
    avatar: Optional[str] = None
    membership_status: Optional[MembershipStatus] = None
    loyalty_points: Optional[int] = Field(default=None, ge=0)
    wallet_balance: Optional[float] = Field(default=None, ge=0)


# ---- Client sub-resources ----


class Vehicle(CamelModel):
    """A vehicle registered to a client."""

    id: str
    client_id: str
    make: str
    model: str
    year: int
    color: str = ""
    license_plate: str = ""
    is_primary: bool = False
    is_active: bool = True
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)


class VehicleCreate(CamelModel):
    make: str = Field(min_length=1, max_length=60)
    model: str = Field(min_length=1, max_length=60)
    year: int = Field(ge=1900, le=2100)
    color: str = ""
    license_plate: str = Field(default="", max_length=16)
    is_primary: bool = False


class VehicleUpdate(CamelModel):
    make: Optional[str] = Field(default=None, min_length=1, max_length=60)
    model: Optional[str] = Field(default=None, min_length=1, max_length=60)
    year: Optional[int] = Field(default=None, ge=1900, le=2100)
    color: Optional[str] = None
    license_plate: Optional[str] = Field(default=None, max_length=16)
    is_primary: Optional[bool] = None
    is_active: Optional[bool] = None


class PaymentMethodType(str, Enum):
    CARD = "card"
    PAYPAL = "paypal"
    WALLET = "wallet"


class PaymentMethod(CamelModel):
    """A stored payment method of a client."""

    id: str
    client_id: str
    type: PaymentMethodType
    last4: Optional[str] = None
    brand: Optional[str] = None
    expiry_date: Optional[str] = None
    is_default: bool = False
    is_active: bool = True
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)


class PaymentMethodCreate(CamelModel):
    type: PaymentMethodType
    last4: Optional[str] = Field(default=None, pattern=r"^\d{4}$")
    brand: Optional[str] = None
    expiry_date: Optional[str] = Field(default=None, pattern=r"^(0[1-9]|1[0-2])/\d{2}$")
    is_default: bool = False

    @model_validator(mode="after")
    def require_card_digits(self) -> "PaymentMethodCreate":
        """Cards must carry the last four digits."""
        if self.type == PaymentMethodType.CARD and not self.last4:
            raise ValueError("last4 is required for card payment methods")
        return self


class PaymentMethodUpdate(CamelModel):
    brand: Optional[str] = None
    expiry_date: Optional[str] = Field(default=None, pattern=r"^(0[1-9]|1[0-2])/\d{2}$")
    is_default: Optional[bool] = None
    is_active: Optional[bool] = None


class AddressType(str, Enum):
    HOME = "home"
    WORK = "work"
    OTHER = "other"


class ClientAddress(CamelModel):
    """A service address of a client."""

    id: str
    client_id: str
    type: AddressType = AddressType.HOME
    street: str
    city: str
    state: str
    zip_code: str
    country: str = "US"
    is_default: bool = False
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)


class AddressCreate(CamelModel):
    type: AddressType = AddressType.HOME
    street: str = Field(min_length=1, max_length=200)
    city: str = Field(min_length=1, max_length=100)
    state: str = Field(min_length=1, max_length=100)
    zip_code: str = Field(min_length=1, max_length=20)
    country: str = Field(default="US", min_length=1, max_length=60)
    is_default: bool = False


class AddressUpdate(CamelModel):
    type: Optional[AddressType] = None
    street: Optional[str] = Field(default=None, min_length=1, max_length=200)
    city: Optional[str] = Field(default=None, min_length=1, max_length=100)
    state: Optional[str] = Field(default=None, min_length=1, max_length=100)
    zip_code: Optional[str] = Field(default=None, min_length=1, max_length=20)
    country: Optional[str] = Field(default=None, min_length=1, max_length=60)
    is_default: Optional[bool] = None
