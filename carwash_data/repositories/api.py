"""
API repositories backed by the booking backend.

Translate repository calls into HTTP requests through the shared ApiClient and
map the JSON envelopes (``{"services": [...]}``, ``{"count": n}``, ...) back onto
domain models. Transient failures are retried by the client; everything that
still fails propagates to the caller or to a decorator.
"""

from typing import Any, Dict, List, Optional, Type, Union
from urllib.parse import quote

import pydantic
import structlog
from pydantic import BaseModel

from ..config import RepositoryConfig
from ..domain.entities import (
    Client,
    ClientAddress,
    ClientCreate,
    ClientUpdate,
    MembershipStatus,
    PaymentMethod,
    Service,
    ServiceCreate,
    ServiceFilters,
    ServiceUpdate,
    Vehicle,
)
from ..domain.exceptions import NotFoundException, UnknownException
from ..domain.queries import Pagination, PaginatedResult, QueryParams
from ..infrastructure.api_client import ApiClient
from .base import ADDRESSES, PAYMENT_METHODS, VEHICLES, BaseRepositoryImpl, SubResource, validate_input
from .interfaces import ClientRepository, ServiceRepository
from .mock import coerce_membership_status

logger = structlog.get_logger(__name__)


def _segment(value: Any) -> str:
    return quote(str(value), safe="")


def _query_value(value: Any) -> Any:
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (list, tuple, set)):
        return ",".join(str(_query_value(v)) for v in value)
    return value


def build_query_string(query: QueryParams) -> Dict[str, Any]:
    """
    Flatten QueryParams into query string parameters.

    Filters become plain parameters (ranges as ``field[min]``/``field[max]``),
    lists are comma separated.
    """
    params: Dict[str, Any] = {}
    for name, value in (query.filters or {}).items():
        if value is None:
            continue
        if isinstance(value, dict):
            for bound in ("min", "max"):
                if value.get(bound) is not None:
                    params[f"{name}[{bound}]"] = value[bound]
        else:
            params[name] = _query_value(value)

    if query.pagination is not None:
        params["page"] = query.pagination.page
        params["limit"] = query.pagination.limit
        if query.pagination.offset is not None:
            params["offset"] = query.pagination.offset
    if query.sort is not None:
        params["sort"] = query.sort.field
        params["order"] = query.sort.order.value
    if query.include:
        params["include"] = ",".join(query.include)
    return params


class ApiRepository(BaseRepositoryImpl):
    """
    Generic CRUD over one REST resource.

    Attributes:
        resource: Collection path, e.g. ``/services``
        list_key: Envelope key of list responses, e.g. ``services``
        item_key: Envelope key of single-entity responses
        model: Domain model the payloads are parsed into
    """

    resource: str = "/"
    list_key: str = "data"
    item_key: str = "data"
    model: Type[BaseModel]

    def __init__(
        self,
        client: ApiClient,
        config: Optional[RepositoryConfig] = None,
        **kwargs: Any,
    ):
        super().__init__(config=config, **kwargs)
        self.client = client

    # Payload mapping

    def _parse(self, raw: Any, model: Optional[Type[BaseModel]] = None, item_key: Optional[str] = None) -> Any:
        model = model or self.model
        item_key = item_key or self.item_key
        if isinstance(raw, dict) and isinstance(raw.get(item_key), dict):
            raw = raw[item_key]
        try:
            return model.model_validate(raw)
        except pydantic.ValidationError as e:
            raise UnknownException(
                f"Malformed {model.__name__} payload from API",
                details={"errors": e.errors(include_url=False)},
            ) from e

    def _items(self, payload: Any, list_key: Optional[str] = None) -> List[Any]:
        if isinstance(payload, dict):
            payload = payload.get(list_key or self.list_key, payload.get("data", []))
        if payload is None:
            return []
        if not isinstance(payload, list):
            raise UnknownException(
                f"Expected a list of {self.entity_name} records from API",
                details={"type": type(payload).__name__},
            )
        return payload

    def _parse_list(self, payload: Any) -> List[Any]:
        return [self._parse(raw) for raw in self._items(payload)]

    @staticmethod
    def _count(payload: Any) -> int:
        if isinstance(payload, dict):
            payload = payload.get("count", 0)
        return int(payload or 0)

    def _path(self, *segments: Any) -> str:
        return "/".join([self.resource.rstrip("/")] + [_segment(s) for s in segments])

    async def _get_optional(self, path: str, **kwargs: Any) -> Optional[Any]:
        try:
            payload = await self.client.get(path, **kwargs)
        except NotFoundException:
            return None
        if payload is None:
            return None
        return self._parse(payload)

    async def _get_list(self, operation: str, path: str, params: Optional[Dict[str, Any]] = None) -> List[Any]:
        async def load() -> List[Any]:
            return self._parse_list(await self.client.get(path, params=params))

        return await self._cached(operation, {"path": path, "params": params}, load)

    # Contract

    async def find_all(self, params: Any = None) -> List[Any]:
        query = self._coerce_params(params)
        return await self._get_list("find_all", self.resource, build_query_string(query) or None)

    async def find_by_id(self, entity_id: str) -> Optional[Any]:
        async def load() -> Optional[Any]:
            return await self._get_optional(self._path(entity_id))

        return await self._cached("find_by_id", {"id": entity_id}, load)

    async def find_paginated(self, params: Any = None) -> PaginatedResult:
        query = self._coerce_params(params)
        pagination = query.pagination or Pagination()

        async def load() -> PaginatedResult:
            request_params = build_query_string(query)
            request_params.setdefault("page", pagination.page)
            request_params.setdefault("limit", pagination.limit)
            payload = await self.client.get(self.resource, params=request_params)
            data = self._parse_list(payload)
            meta = payload.get("pagination") or {} if isinstance(payload, dict) else {}
            return PaginatedResult.build(
                data,
                total=int(meta.get("total", len(data))),
                page=int(meta.get("page", pagination.page)),
                limit=int(meta.get("limit", pagination.limit)),
            )

        return await self._cached("find_paginated", query.cache_params(), load)

    async def count(self, filters: Optional[Dict[str, Any]] = None) -> int:
        params = build_query_string(QueryParams(filters=filters)) if filters else None
        return self._count(await self.client.get(self._path("count"), params=params))

    async def create(self, data: Any) -> Any:
        validated = self._validate_create(data)
        payload = await self.client.post(self.resource, validated.to_payload())
        entity = self._parse(payload)
        self._invalidate_entity()
        logger.info("Entity created via API", entity=self.entity_name, id=entity.id)
        return entity

    async def update(self, entity_id: str, data: Any) -> Any:
        validated = self._validate_update(data)
        try:
            payload = await self.client.put(
                self._path(entity_id), validated.to_payload(exclude_unset=True)
            )
        except NotFoundException as e:
            raise NotFoundException(self.entity_name, entity_id) from e
        entity = self._parse(payload)
        self._invalidate_entity()
        logger.info("Entity updated via API", entity=self.entity_name, id=entity_id)
        return entity

    async def delete(self, entity_id: str) -> bool:
        try:
            await self.client.delete(self._path(entity_id))
        except NotFoundException as e:
            raise NotFoundException(self.entity_name, entity_id) from e
        self._invalidate_entity()
        logger.info("Entity deleted via API", entity=self.entity_name, id=entity_id)
        return True


class ApiServiceRepository(ApiRepository, ServiceRepository):
    """Services served by ``/services``."""

    entity_name = "Service"
    create_model = ServiceCreate
    update_model = ServiceUpdate
    model = Service
    resource = "/services"
    list_key = "services"
    item_key = "service"

    async def find_by_category(self, category_slug: str) -> List[Service]:
        return await self._get_list("find_by_category", self._path("category", category_slug))

    async def find_featured(self) -> List[Service]:
        return await self._get_list("find_featured", self._path("featured"))

    async def find_popular(self) -> List[Service]:
        return await self._get_list("find_popular", self._path("popular"))

    async def find_by_availability(self, kind: str) -> List[Service]:
        return await self._get_list("find_by_availability", self._path("availability", kind))

    async def search(self, query: str) -> List[Service]:
        return await self._get_list("search", self._path("search"), {"q": query})

    async def find_with_filters(self, filters: Union[ServiceFilters, Dict[str, Any]]) -> List[Service]:
        criteria = validate_input(ServiceFilters, filters, self.entity_name, "filter")
        body = criteria.model_dump(mode="json", by_alias=True, exclude_none=True)

        async def load() -> List[Service]:
            return self._parse_list(await self.client.post(self._path("filter"), body))

        return await self._cached("find_with_filters", criteria, load)

    async def find_related(self, service_id: str, limit: int = 3) -> List[Service]:
        return await self._get_list(
            "find_related", self._path(service_id, "related"), {"limit": limit}
        )

    async def get_average_rating(self, service_id: str) -> float:
        payload = await self.client.get(self._path(service_id, "rating"))
        if isinstance(payload, dict):
            payload = payload.get("rating", payload.get("averageRating", 0))
        return float(payload or 0)

    async def get_booking_count(self, service_id: str) -> int:
        return self._count(await self.client.get(self._path(service_id, "bookings", "count")))


class ApiClientRepository(ApiRepository, ClientRepository):
    """Client accounts served by ``/clients``."""

    entity_name = "Client"
    create_model = ClientCreate
    update_model = ClientUpdate
    model = Client
    resource = "/clients"
    list_key = "clients"
    item_key = "client"

    async def find_by_email(self, email: str) -> Optional[Client]:
        # E-mail addresses are matched case-insensitively
        needle = email.strip().lower()

        async def load() -> Optional[Client]:
            return await self._get_optional(self._path("by-email", needle))

        return await self._cached("find_by_email", {"email": needle}, load)

    async def find_by_phone(self, phone: str) -> Optional[Client]:
        async def load() -> Optional[Client]:
            return await self._get_optional(self._path("by-phone", phone))

        return await self._cached("find_by_phone", {"phone": phone}, load)

    async def find_by_membership_status(self, status: Union[MembershipStatus, str]) -> List[Client]:
        membership = coerce_membership_status(status)
        return await self._get_list(
            "find_by_membership_status", self._path("by-membership", membership.value)
        )

    async def search(self, query: str, limit: Optional[int] = None) -> List[Client]:
        params: Dict[str, Any] = {"q": query}
        if limit:
            params["limit"] = limit
        return await self._get_list("search", self._path("search"), params)

    async def count_by_membership_status(self, status: Union[MembershipStatus, str]) -> int:
        membership = coerce_membership_status(status)
        return self._count(
            await self.client.get(self._path("count", "by-membership", membership.value))
        )

    # Client sub-resources

    def _owned_path(self, resource: SubResource, record_id: str) -> str:
        return f"/{resource.segment}/{_segment(record_id)}"

    async def _list_owned(self, resource: SubResource, client_id: str) -> List[Any]:
        path = self._path(client_id, resource.segment)

        async def load() -> List[Any]:
            try:
                payload = await self.client.get(path)
            except NotFoundException:
                return []
            return [
                self._parse(raw, resource.model, resource.item_key)
                for raw in self._items(payload, resource.list_key)
            ]

        return await self._cached(f"get_{resource.collection}", {"client_id": client_id}, load)

    async def _add_owned(self, resource: SubResource, client_id: str, data: Any) -> Any:
        validated = validate_input(resource.create_model, data, resource.label, "create")
        try:
            payload = await self.client.post(self._path(client_id, resource.segment), validated.to_payload())
        except NotFoundException as e:
            raise NotFoundException(self.entity_name, client_id) from e
        record = self._parse(payload, resource.model, resource.item_key)
        self._invalidate_entity()
        logger.info("Client record added via API", resource=resource.label, client_id=client_id, id=record.id)
        return record

    async def _update_owned(self, resource: SubResource, record_id: str, data: Any) -> Any:
        validated = validate_input(resource.update_model, data, resource.label, "update")
        try:
            payload = await self.client.put(
                self._owned_path(resource, record_id), validated.to_payload(exclude_unset=True)
            )
        except NotFoundException as e:
            raise NotFoundException(resource.label, record_id) from e
        record = self._parse(payload, resource.model, resource.item_key)
        self._invalidate_entity()
        logger.info("Client record updated via API", resource=resource.label, id=record_id)
        return record

    async def _delete_owned(self, resource: SubResource, record_id: str) -> bool:
        try:
            await self.client.delete(self._owned_path(resource, record_id))
        except NotFoundException as e:
            raise NotFoundException(resource.label, record_id) from e
        self._invalidate_entity()
        logger.info("Client record deleted via API", resource=resource.label, id=record_id)
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
