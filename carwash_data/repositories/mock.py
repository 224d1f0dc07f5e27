"""
Mock repositories backed by the in-memory MockDataStore.

Used for development, tests and as the secondary source of the Fallback and
Hybrid decorators. Reads are cached like the API repositories so both behave
the same way from a caller's point of view.
"""

import re
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Mapping, Optional, Union

import structlog

from ..config import RepositoryConfig
from ..data.mock_data import MockDataStore
from ..domain.entities import (
    Client,
    ClientAddress,
    ClientCreate,
    ClientUpdate,
    MembershipStatus,
    PaymentMethod,
    Service,
    ServiceAvailability,
    ServiceCategory,
    ServiceCreate,
    ServiceFilters,
    ServiceUpdate,
    Vehicle,
    utc_now,
)
from ..domain.exceptions import NotFoundException, ValidationException
from ..domain.queries import PaginatedResult, QueryParams
from .base import (
    ADDRESSES,
    PAYMENT_METHODS,
    VEHICLES,
    BaseRepositoryImpl,
    SubResource,
    contains_text,
    matches_filters,
    slugify,
    sort_items,
    validate_input,
)
from .interfaces import ClientRepository, ServiceRepository

logger = structlog.get_logger(__name__)

DEFAULT_SERVICE_IMAGE = "/images/default-service.jpg"
IN_SHOP_ALIASES = frozenset({"in_shop", "in-shop", "inshop", "onsite", "on-site"})


def normalize_availability(kind: str) -> Optional[str]:
    """Map availability spellings onto ``mobile`` / ``in_shop``."""
    value = kind.strip().lower()
    if value == "mobile":
        return "mobile"
    if value in IN_SHOP_ALIASES:
        return "in_shop"
    return None


def coerce_membership_status(status: Union[MembershipStatus, str]) -> MembershipStatus:
    try:
        return MembershipStatus(status.lower() if isinstance(status, str) else status)
    except ValueError as e:
        allowed = ", ".join(s.value for s in MembershipStatus)
        raise ValidationException(
            "Invalid membership status",
            reasons=[f"membership_status: must be one of {allowed}, got {status!r}"],
        ) from e


class MockRepository(BaseRepositoryImpl, ABC):
    """Generic CRUD over one record list of the MockDataStore."""

    id_prefix = "mock"

    def __init__(
        self,
        store: MockDataStore,
        config: Optional[RepositoryConfig] = None,
        **kwargs: Any,
    ):
        super().__init__(config=config, **kwargs)
        self.store = store

    @property
    @abstractmethod
    def records(self) -> List[Any]:
        """The store list this repository reads and mutates."""
        pass

    @abstractmethod
    def _build(self, data: Any) -> Any:
        """Turn validated create input into a new entity."""
        pass

    @abstractmethod
    def _apply_update(self, existing: Any, changes: Dict[str, Any]) -> Any:
        """Return a copy of ``existing`` with ``changes`` applied."""
        pass

    def _index_of(self, entity_id: str) -> int:
        for index, item in enumerate(self.records):
            if item.id == entity_id:
                return index
        return -1

    def _query(self, query: QueryParams) -> List[Any]:
        items = [item for item in self.records if matches_filters(item, query.filters)]
        return sort_items(items, query.sort)

    def _select(self, predicate) -> List[Any]:
        return [item.model_copy(deep=True) for item in self.records if predicate(item)]

    async def find_all(self, params: Any = None) -> List[Any]:
        query = self._coerce_params(params)

        async def load() -> List[Any]:
            await self.store.simulate_delay()
            items = self._query(query)
            if query.pagination is not None:
                start = query.pagination.start
                items = items[start:start + query.pagination.limit]
            return [item.model_copy(deep=True) for item in items]

        return await self._cached("find_all", query.cache_params(), load)

    async def find_by_id(self, entity_id: str) -> Optional[Any]:
        async def load() -> Optional[Any]:
            await self.store.simulate_delay()
            index = self._index_of(entity_id)
            return self.records[index].model_copy(deep=True) if index >= 0 else None

        return await self._cached("find_by_id", {"id": entity_id}, load)

    async def find_paginated(self, params: Any = None) -> PaginatedResult:
        query = self._coerce_params(params)

        async def load() -> PaginatedResult:
            await self.store.simulate_delay()
            items = [item.model_copy(deep=True) for item in self._query(query)]
            return PaginatedResult.from_items(items, query.pagination)

        return await self._cached("find_paginated", query.cache_params(), load)

    async def count(self, filters: Optional[Dict[str, Any]] = None) -> int:
        await self.store.simulate_delay()
        return sum(1 for item in self.records if matches_filters(item, filters))

    async def create(self, data: Any) -> Any:
        validated = self._validate_create(data)
        await self.store.simulate_delay()

        with self.store.lock:
            entity = self._build(validated)
            self.records.append(entity)

        self._invalidate_entity()
        logger.info("Mock entity created", entity=self.entity_name, id=entity.id)
        return entity.model_copy(deep=True)

    async def update(self, entity_id: str, data: Any) -> Any:
        validated = self._validate_update(data)
        await self.store.simulate_delay()

        with self.store.lock:
            index = self._index_of(entity_id)
            if index < 0:
                raise NotFoundException(self.entity_name, entity_id)
            updated = self._apply_update(
                self.records[index], validated.model_dump(exclude_unset=True)
            )
            self.records[index] = updated

        self._invalidate_entity()
        logger.info("Mock entity updated", entity=self.entity_name, id=entity_id)
        return updated.model_copy(deep=True)

    async def delete(self, entity_id: str) -> bool:
        await self.store.simulate_delay()

        with self.store.lock:
            index = self._index_of(entity_id)
            if index < 0:
                raise NotFoundException(self.entity_name, entity_id)
            del self.records[index]

        self._invalidate_entity()
        logger.info("Mock entity deleted", entity=self.entity_name, id=entity_id)
        return True


class MockServiceRepository(MockRepository, ServiceRepository):
    """Services served from the bundled fixtures."""

    entity_name = "Service"
    create_model = ServiceCreate
    update_model = ServiceUpdate
    id_prefix = "service"

    @property
    def records(self) -> List[Service]:
        return self.store.services

    def _category(self, value: str) -> ServiceCategory:
        slug = slugify(value)
        for service in self.records:
            if service.category.slug == slug or service.category.id == value:
                return service.category.model_copy(deep=True)
        return ServiceCategory(id=slug, name=value, slug=slug)

    @staticmethod
    def _availability(kinds: List[str]) -> ServiceAvailability:
        normalized = {normalize_availability(kind) for kind in kinds}
        return ServiceAvailability(mobile="mobile" in normalized, in_shop="in_shop" in normalized)

    def _build(self, data: ServiceCreate) -> Service:
        now = utc_now()
        return Service(
            id=self.store.next_id(self.id_prefix),
            name=data.name,
            slug=slugify(data.name),
            description=data.description,
            short_description=data.description[:100],
            price=data.price,
            duration=f"{data.duration} min",
            image=data.images[0] if data.images else DEFAULT_SERVICE_IMAGE,
            category=self._category(data.category),
            featured=data.featured,
            popular=data.popular,
            availability=self._availability(data.availability),
            tags=list(data.tags),
            created_at=now,
            updated_at=now,
        )

    def _apply_update(self, existing: Service, changes: Dict[str, Any]) -> Service:
        fields: Dict[str, Any] = {}
        for name in ("name", "description", "price", "featured", "popular", "tags"):
            if changes.get(name) is not None:
                fields[name] = changes[name]
        if changes.get("duration") is not None:
            fields["duration"] = f"{changes['duration']} min"
        if changes.get("category") is not None:
            fields["category"] = self._category(changes["category"])
        if changes.get("availability") is not None:
            fields["availability"] = self._availability(changes["availability"])
        if changes.get("images"):
            fields["image"] = changes["images"][0]
        fields["updated_at"] = utc_now()
        return existing.model_copy(update=fields, deep=True)

    async def find_by_category(self, category_slug: str) -> List[Service]:
        async def load() -> List[Service]:
            await self.store.simulate_delay()
            return self._select(lambda s: s.category.slug == category_slug)

        return await self._cached("find_by_category", {"slug": category_slug}, load)

    async def find_featured(self) -> List[Service]:
        async def load() -> List[Service]:
            await self.store.simulate_delay()
            return self._select(lambda s: s.featured)

        return await self._cached("find_featured", None, load)

    async def find_popular(self) -> List[Service]:
        async def load() -> List[Service]:
            await self.store.simulate_delay()
            return self._select(lambda s: s.popular)

        return await self._cached("find_popular", None, load)

    async def find_by_availability(self, kind: str) -> List[Service]:
        normalized = normalize_availability(kind)

        async def load() -> List[Service]:
            await self.store.simulate_delay()
            if normalized is None:
                return []
            return self._select(lambda s: getattr(s.availability, normalized))

        return await self._cached("find_by_availability", {"kind": normalized or kind}, load)

    @staticmethod
    def _matches_text(service: Service, query: str) -> bool:
        return contains_text(query, service.name, service.description, service.category.name, service.tags)

    async def search(self, query: str) -> List[Service]:
        async def load() -> List[Service]:
            await self.store.simulate_delay()
            return self._select(lambda s: self._matches_text(s, query))

        return await self._cached("search", {"query": query}, load)

    async def find_with_filters(self, filters: Union[ServiceFilters, Mapping[str, Any]]) -> List[Service]:
        criteria = validate_input(ServiceFilters, filters, self.entity_name, "filter")

        def predicate(service: Service) -> bool:
            if criteria.category and service.category.slug != criteria.category:
                return False
            if criteria.featured is not None and service.featured != criteria.featured:
                return False
            if criteria.popular is not None and service.popular != criteria.popular:
                return False
            if criteria.availability:
                kinds = {normalize_availability(kind) for kind in criteria.availability}
                if not any(kind and getattr(service.availability, kind) for kind in kinds):
                    return False
            if criteria.price_range:
                low, high = criteria.price_range.min, criteria.price_range.max
                if low is not None and service.price < low:
                    return False
                if high is not None and service.price > high:
                    return False
            if criteria.search and not self._matches_text(service, criteria.search):
                return False
            return True

        async def load() -> List[Service]:
            await self.store.simulate_delay()
            return self._select(predicate)

        return await self._cached("find_with_filters", criteria, load)

    async def find_related(self, service_id: str, limit: int = 3) -> List[Service]:
        async def load() -> List[Service]:
            service = await self.find_by_id(service_id)
            if service is None:
                return []
            related = self._select(
                lambda s: s.id != service_id and s.category.slug == service.category.slug
            )
            return related[:limit]

        return await self._cached("find_related", {"id": service_id, "limit": limit}, load)

    async def get_average_rating(self, service_id: str) -> float:
        service = await self.find_by_id(service_id)
        return service.rating if service is not None else 0.0

    async def get_booking_count(self, service_id: str) -> int:
        await self.store.simulate_delay()
        return self.store.booking_counts.get(service_id, 0)


def _digits(phone: str) -> str:
    return re.sub(r"\D", "", phone)


class MockClientRepository(MockRepository, ClientRepository):
    """Client accounts served from the bundled fixtures."""

    entity_name = "Client"
    create_model = ClientCreate
    update_model = ClientUpdate
    id_prefix = "client"

    @property
    def records(self) -> List[Client]:
        return self.store.clients

    def _ensure_unique_email(self, email: str, exclude_id: Optional[str] = None) -> None:
        for client in self.records:
            if client.id != exclude_id and client.email.lower() == email.lower():
                raise ValidationException(
                    "Invalid Client data",
                    reasons=[f"email: {email} is already registered"],
                )

    def _build(self, data: ClientCreate) -> Client:
        self._ensure_unique_email(data.email)
        now = utc_now()
        return Client(
            id=self.store.next_id(self.id_prefix),
            member_since=now,
            created_at=now,
            updated_at=now,
            **data.model_dump(),
        )

    def _apply_update(self, existing: Client, changes: Dict[str, Any]) -> Client:
        fields = {name: value for name, value in changes.items() if value is not None}
        if "email" in fields:
            self._ensure_unique_email(fields["email"], exclude_id=existing.id)
        fields["updated_at"] = utc_now()
        return existing.model_copy(update=fields, deep=True)

    async def find_by_email(self, email: str) -> Optional[Client]:
        needle = email.strip().lower()

        async def load() -> Optional[Client]:
            await self.store.simulate_delay()
            found = self._select(lambda c: c.email.lower() == needle)
            return found[0] if found else None

        return await self._cached("find_by_email", {"email": needle}, load)

    async def find_by_phone(self, phone: str) -> Optional[Client]:
        needle = _digits(phone)

        async def load() -> Optional[Client]:
            await self.store.simulate_delay()
            found = self._select(lambda c: bool(needle) and _digits(c.phone) == needle)
            return found[0] if found else None

        return await self._cached("find_by_phone", {"phone": needle}, load)

    async def find_by_membership_status(self, status: Union[MembershipStatus, str]) -> List[Client]:
        membership = coerce_membership_status(status)

        async def load() -> List[Client]:
            await self.store.simulate_delay()
            return self._select(lambda c: c.membership_status == membership)

        return await self._cached("find_by_membership_status", {"status": membership}, load)

    async def search(self, query: str, limit: Optional[int] = None) -> List[Client]:
        async def load() -> List[Client]:
            await self.store.simulate_delay()
            found = self._select(lambda c: contains_text(query, c.name, c.email, c.phone))
            return found[:limit] if limit else found

        return await self._cached("search", {"query": query, "limit": limit}, load)

    async def count_by_membership_status(self, status: Union[MembershipStatus, str]) -> int:
        membership = coerce_membership_status(status)
        await self.store.simulate_delay()
        return sum(1 for c in self.records if c.membership_status == membership)

    # Client sub-resources

    def _owned(self, resource: SubResource) -> List[Any]:
        return getattr(self.store, resource.collection)

    @staticmethod
    def _position(records: List[Any], record_id: str) -> int:
        for index, record in enumerate(records):
            if record.id == record_id:
                return index
        return -1

    def _release_flag(self, resource: SubResource, client_id: str, keep_id: str) -> None:
        """Clear the exclusive flag on every other record of the client."""
        records = self._owned(resource)
        for index, record in enumerate(records):
            if record.client_id == client_id and record.id != keep_id and getattr(record, resource.exclusive_flag):
                records[index] = record.model_copy(
                    update={resource.exclusive_flag: False, "updated_at": utc_now()}
                )

    async def _list_owned(self, resource: SubResource, client_id: str) -> List[Any]:
        async def load() -> List[Any]:
            await self.store.simulate_delay()
            return [
                record.model_copy(deep=True)
                for record in self._owned(resource)
                if record.client_id == client_id
            ]

        return await self._cached(f"get_{resource.collection}", {"client_id": client_id}, load)

    async def _add_owned(self, resource: SubResource, client_id: str, data: Any) -> Any:
        validated = validate_input(resource.create_model, data, resource.label, "create")
        await self.store.simulate_delay()

        with self.store.lock:
            if self._index_of(client_id) < 0:
                raise NotFoundException(self.entity_name, client_id)
            now = utc_now()
            record = resource.model(
                id=self.store.next_id(resource.id_prefix),
                client_id=client_id,
                created_at=now,
                updated_at=now,
                **validated.model_dump(),
            )
            if getattr(record, resource.exclusive_flag):
                self._release_flag(resource, client_id, record.id)
            self._owned(resource).append(record)

        self._invalidate_entity()
        logger.info("Mock client record added", resource=resource.label, client_id=client_id, id=record.id)
        return record.model_copy(deep=True)

    async def _update_owned(self, resource: SubResource, record_id: str, data: Any) -> Any:
        validated = validate_input(resource.update_model, data, resource.label, "update")
        changes = {
            name: value
            for name, value in validated.model_dump(exclude_unset=True).items()
            if value is not None
        }
        await self.store.simulate_delay()

        with self.store.lock:
            records = self._owned(resource)
            index = self._position(records, record_id)
            if index < 0:
                raise NotFoundException(resource.label, record_id)
            updated = records[index].model_copy(update={**changes, "updated_at": utc_now()}, deep=True)
            records[index] = updated
            if changes.get(resource.exclusive_flag):
                self._release_flag(resource, updated.client_id, record_id)

        self._invalidate_entity()
        logger.info("Mock client record updated", resource=resource.label, id=record_id)
        return updated.model_copy(deep=True)

    async def _delete_owned(self, resource: SubResource, record_id: str) -> bool:
        await self.store.simulate_delay()

        with self.store.lock:
            records = self._owned(resource)
            index = self._position(records, record_id)
            if index < 0:
                raise NotFoundException(resource.label, record_id)
            del records[index]

        self._invalidate_entity()
        logger.info("Mock client record deleted", resource=resource.label, id=record_id)
        return True

    async def get_vehicles(self, client_id: str) -> List[Vehicle]:
        return await self._list_owned(VEHICLES, client_id)

    async def add_vehicle(self, client_id: str, data: Any) -> Vehicle:
        return await self._add_owned(VEHICLES, client_id, data)

    async def update_vehicle(self, vehicle_id: str, data: Any) -> Vehicle:
        return await self._update_owned(VEHICLES, vehicle_id, data)

    async def delete_vehicle(self, vehicle_id: str) -> bool:
        return await self._delete_owned(VEHICLES, vehicle_id)

    async def get_payment_methods(self, client_id: str) -> List[PaymentMethod]:
        return await self._list_owned(PAYMENT_METHODS, client_id)

    async def add_payment_method(self, client_id: str, data: Any) -> PaymentMethod:
        return await self._add_owned(PAYMENT_METHODS, client_id, data)

    async def update_payment_method(self, method_id: str, data: Any) -> PaymentMethod:
        return await self._update_owned(PAYMENT_METHODS, method_id, data)

    async def delete_payment_method(self, method_id: str) -> bool:
        return await self._delete_owned(PAYMENT_METHODS, method_id)

    async def get_addresses(self, client_id: str) -> List[ClientAddress]:
        return await self._list_owned(ADDRESSES, client_id)

    async def add_address(self, client_id: str, data: Any) -> ClientAddress:
        return await self._add_owned(ADDRESSES, client_id, data)

    async def update_address(self, address_id: str, data: Any) -> ClientAddress:
        return await self._update_owned(ADDRESSES, address_id, data)

    async def delete_address(self, address_id: str) -> bool:
        return await self._delete_owned(ADDRESSES, address_id)
