"""
Repository decorators routing calls between two repositories of one contract.

FallbackRepository: reads try the primary (API) repository and fall back to the
secondary (mock) one on failure; writes only go to the primary.

HybridRepository: reads are served by the primary (mock) repository; writes go
to the secondary (API) repository first and, when allowed, are replayed on the
mock repository if the API write failed.

Validation errors are never routed to the other repository.
"""

from typing import Any, Dict, List, Optional

import structlog

from ..domain.exceptions import ValidationException
from ..metrics import record_fallback
from .base import ADDRESSES, PAYMENT_METHODS, VEHICLES, SubResource, validate_input
from .interfaces import BaseRepository, ClientRepository, ServiceRepository

logger = structlog.get_logger(__name__)


def _describe(args: tuple, kwargs: Dict[str, Any]) -> Dict[str, Any]:
    described: Dict[str, Any] = {"args": [repr(arg) for arg in args]}
    if kwargs:
        described["kwargs"] = {key: repr(value) for key, value in kwargs.items()}
    return described


class FallbackRepository(BaseRepository):
    """
    Serve reads from ``primary``, substituting ``secondary`` when it fails.

    Writes are sent to the primary only and propagate their errors so the two
    data sources never silently diverge.
    """

    mode = "fallback"

    def __init__(self, primary: BaseRepository, secondary: BaseRepository):
        self.primary = primary
        self.secondary = secondary
        self.entity_name = primary.entity_name

    async def _read(self, operation: str, *args: Any, **kwargs: Any) -> Any:
        try:
            return await getattr(self.primary, operation)(*args, **kwargs)
        except ValidationException:
            raise
        except Exception as e:
            logger.warning(
                "Primary repository failed, serving from fallback",
                entity=self.entity_name,
                operation=operation,
                error=str(e),
                error_type=type(e).__name__,
                **_describe(args, kwargs),
            )
            record_fallback(self.entity_name, operation, self.mode)
            return await getattr(self.secondary, operation)(*args, **kwargs)

    async def find_all(self, params: Any = None) -> List[Any]:
        return await self._read("find_all", params)

    async def find_by_id(self, entity_id: str) -> Optional[Any]:
        return await self._read("find_by_id", entity_id)

    async def find_one(self, filters: Dict[str, Any]) -> Optional[Any]:
        return await self._read("find_one", filters)

    async def find_many(self, filters: Dict[str, Any]) -> List[Any]:
        return await self._read("find_many", filters)

    async def find_paginated(self, params: Any = None) -> Any:
        return await self._read("find_paginated", params)

    async def count(self, filters: Optional[Dict[str, Any]] = None) -> int:
        return await self._read("count", filters)

    async def exists(self, entity_id: str) -> bool:
        return await self._read("exists", entity_id)

    async def create(self, data: Any) -> Any:
        return await self.primary.create(data)

    async def update(self, entity_id: str, data: Any) -> Any:
        return await self.primary.update(entity_id, data)

    async def delete(self, entity_id: str) -> bool:
        return await self.primary.delete(entity_id)

    async def create_many(self, items: List[Any]) -> List[Any]:
        return await self.primary.create_many(items)

    async def update_many(self, filters: Dict[str, Any], data: Any) -> int:
        return await self.primary.update_many(filters, data)

    async def delete_many(self, filters: Dict[str, Any]) -> int:
        return await self.primary.delete_many(filters)

    def clear_cache(self) -> None:
        self.primary.clear_cache()
        self.secondary.clear_cache()

    async def refresh_cache(self) -> None:
        self.clear_cache()
        await self.find_all()


class FallbackServiceRepository(FallbackRepository, ServiceRepository):
    async def find_by_category(self, category_slug: str):
        return await self._read("find_by_category", category_slug)

    async def find_featured(self):
        return await self._read("find_featured")

    async def find_popular(self):
        return await self._read("find_popular")

    async def find_by_availability(self, kind: str):
        return await self._read("find_by_availability", kind)

    async def search(self, query: str):
        return await self._read("search", query)

    async def find_with_filters(self, filters):
        return await self._read("find_with_filters", filters)

    async def find_related(self, service_id: str, limit: int = 3):
        return await self._read("find_related", service_id, limit)

    async def get_average_rating(self, service_id: str) -> float:
        return await self._read("get_average_rating", service_id)

    async def get_booking_count(self, service_id: str) -> int:
        return await self._read("get_booking_count", service_id)


class FallbackClientRepository(FallbackRepository, ClientRepository):
    async def find_by_email(self, email: str):
        return await self._read("find_by_email", email)

    async def find_by_phone(self, phone: str):
        return await self._read("find_by_phone", phone)

    async def find_by_membership_status(self, status):
        return await self._read("find_by_membership_status", status)

    async def search(self, query: str, limit: Optional[int] = None):
        return await self._read("search", query, limit)

    async def count_by_membership_status(self, status) -> int:
        return await self._read("count_by_membership_status", status)

    async def get_vehicles(self, client_id: str):
        return await self._read("get_vehicles", client_id)

    async def add_vehicle(self, client_id: str, data):
        return await self.primary.add_vehicle(client_id, data)

    async def update_vehicle(self, vehicle_id: str, data):
        return await self.primary.update_vehicle(vehicle_id, data)

    async def delete_vehicle(self, vehicle_id: str) -> bool:
        return await self.primary.delete_vehicle(vehicle_id)

    async def get_payment_methods(self, client_id: str):
        return await self._read("get_payment_methods", client_id)

    async def add_payment_method(self, client_id: str, data):
        return await self.primary.add_payment_method(client_id, data)

    async def update_payment_method(self, method_id: str, data):
        return await self.primary.update_payment_method(method_id, data)

    async def delete_payment_method(self, method_id: str) -> bool:
        return await self.primary.delete_payment_method(method_id)

    async def get_addresses(self, client_id: str):
        return await self._read("get_addresses", client_id)

    async def add_address(self, client_id: str, data):
        return await self.primary.add_address(client_id, data)

    async def update_address(self, address_id: str, data):
        return await self.primary.update_address(address_id, data)

    async def delete_address(self, address_id: str) -> bool:
        return await self.primary.delete_address(address_id)


class HybridRepository(BaseRepository):
    """
    Serve reads from the mock ``primary``; send writes to the API ``secondary``.

    With ``write_fallback`` enabled a failed API write is replayed on the mock
    repository so it appears to succeed locally (offline-friendly development
    mode). With it disabled the API error propagates.
    """

    mode = "hybrid"

    def __init__(
        self,
        primary: BaseRepository,
        secondary: BaseRepository,
        write_fallback: bool = True,
    ):
        self.primary = primary
        self.secondary = secondary
        self.write_fallback = write_fallback
        self.entity_name = primary.entity_name

    async def _write(self, operation: str, *args: Any) -> Any:
        try:
            return await getattr(self.secondary, operation)(*args)
        except ValidationException:
            raise
        except Exception as e:
            if not self.write_fallback:
                raise
            logger.warning(
                "API write failed, applying it to mock data",
                entity=self.entity_name,
                operation=operation,
                error=str(e),
                error_type=type(e).__name__,
                **_describe(args, {}),
            )
            record_fallback(self.entity_name, operation, self.mode)
            return await getattr(self.primary, operation)(*args)

    def _validate(self, model_attr: str, data: Any, action: str) -> Any:
        model_cls = getattr(self.primary, model_attr, None)
        if model_cls is None:
            return data
        return validate_input(model_cls, data, self.entity_name, action)

    # Reads

    async def find_all(self, params: Any = None) -> List[Any]:
        return await self.primary.find_all(params)

    async def find_by_id(self, entity_id: str) -> Optional[Any]:
        return await self.primary.find_by_id(entity_id)

    async def find_one(self, filters: Dict[str, Any]) -> Optional[Any]:
        return await self.primary.find_one(filters)

    async def find_many(self, filters: Dict[str, Any]) -> List[Any]:
        return await self.primary.find_many(filters)

    async def find_paginated(self, params: Any = None) -> Any:
        return await self.primary.find_paginated(params)

    async def count(self, filters: Optional[Dict[str, Any]] = None) -> int:
        return await self.primary.count(filters)

    async def exists(self, entity_id: str) -> bool:
        return await self.primary.exists(entity_id)

    # Writes

    async def create(self, data: Any) -> Any:
        validated = self._validate("create_model", data, "create")
        return await self._write("create", validated)

    async def update(self, entity_id: str, data: Any) -> Any:
        validated = self._validate("update_model", data, "update")
        return await self._write("update", entity_id, validated)

    async def delete(self, entity_id: str) -> bool:
        return await self._write("delete", entity_id)

    async def create_many(self, items: List[Any]) -> List[Any]:
        validated = [self._validate("create_model", item, "create") for item in items]
        return [await self._write("create", item) for item in validated]

    async def update_many(self, filters: Dict[str, Any], data: Any) -> int:
        validated = self._validate("update_model", data, "update")
        targets = await self.find_many(filters)
        for item in targets:
            await self._write("update", item.id, validated)
        return len(targets)

    async def delete_many(self, filters: Dict[str, Any]) -> int:
        targets = await self.find_many(filters)
        for item in targets:
            await self.delete(item.id)
        return len(targets)

    def clear_cache(self) -> None:
        self.primary.clear_cache()
        self.secondary.clear_cache()

    async def refresh_cache(self) -> None:
        self.clear_cache()
        await self.primary.find_all()


class HybridServiceRepository(HybridRepository, ServiceRepository):
    async def find_by_category(self, category_slug: str):
        return await self.primary.find_by_category(category_slug)

    async def find_featured(self):
        return await self.primary.find_featured()

    async def find_popular(self):
        return await self.primary.find_popular()

    async def find_by_availability(self, kind: str):
        return await self.primary.find_by_availability(kind)

    async def search(self, query: str):
        return await self.primary.search(query)

    async def find_with_filters(self, filters):
        return await self.primary.find_with_filters(filters)

    async def find_related(self, service_id: str, limit: int = 3):
        return await self.primary.find_related(service_id, limit)

    async def get_average_rating(self, service_id: str) -> float:
        return await self.primary.get_average_rating(service_id)

    async def get_booking_count(self, service_id: str) -> int:
        return await self.primary.get_booking_count(service_id)


class HybridClientRepository(HybridRepository, ClientRepository):
    async def find_by_email(self, email: str):
        return await self.primary.find_by_email(email)

    async def find_by_phone(self, phone: str):
        return await self.primary.find_by_phone(phone)

    async def find_by_membership_status(self, status):
        return await self.primary.find_by_membership_status(status)

    async def search(self, query: str, limit: Optional[int] = None):
        return await self.primary.search(query, limit)

    async def count_by_membership_status(self, status) -> int:
        return await self.primary.count_by_membership_status(status)

    # Client sub-resources

    async def _add_owned(self, resource: SubResource, operation: str, client_id: str, data):
        validated = validate_input(resource.create_model, data, resource.label, "create")
        return await self._write(operation, client_id, validated)

    async def _update_owned(self, resource: SubResource, operation: str, record_id: str, data):
        validated = validate_input(resource.update_model, data, resource.label, "update")
        return await self._write(operation, record_id, validated)

    async def get_vehicles(self, client_id: str):
        return await self.primary.get_vehicles(client_id)

    async def add_vehicle(self, client_id: str, data):
        return await self._add_owned(VEHICLES, "add_vehicle", client_id, data)

    async def update_vehicle(self, vehicle_id: str, data):
        return await self._update_owned(VEHICLES, "update_vehicle", vehicle_id, data)

    async def delete_vehicle(self, vehicle_id: str) -> bool:
        return await self._write("delete_vehicle", vehicle_id)

    async def get_payment_methods(self, client_id: str):
        return await self.primary.get_payment_methods(client_id)

    async def add_payment_method(self, client_id: str, data):
        return await self._add_owned(PAYMENT_METHODS, "add_payment_method", client_id, data)

    async def update_payment_method(self, method_id: str, data):
        return await self._update_owned(PAYMENT_METHODS, "update_payment_method", method_id, data)

    async def delete_payment_method(self, method_id: str) -> bool:
        return await self._write("delete_payment_method", method_id)

    async def get_addresses(self, client_id: str):
        return await self.primary.get_addresses(client_id)

    async def add_address(self, client_id: str, data):
        return await self._add_owned(ADDRESSES, "add_address", client_id, data)

    async def update_address(self, address_id: str, data):
        return await self._update_owned(ADDRESSES, "update_address", address_id, data)

    async def delete_address(self, address_id: str) -> bool:
        return await self._write("delete_address", address_id)
