"""
Shared repository implementation: read-through caching, input validation and
the in-memory query helpers used by the mock data source, and the descriptors of
the client sub-resources.
"""

import re
from dataclasses import dataclass
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, Iterable, List, Mapping, Optional, Type, TypeVar

import pydantic
import structlog
from pydantic import BaseModel
from pydantic.alias_generators import to_snake

from ..cache.memory_cache import CACHE_MISS, DEFAULT_MAX_ENTRIES, RepositoryCache
from ..config import RepositoryConfig
from ..domain.entities import (
    AddressCreate,
    AddressUpdate,
    ClientAddress,
    PaymentMethod,
    PaymentMethodCreate,
    PaymentMethodUpdate,
    Vehicle,
    VehicleCreate,
    VehicleUpdate,
)
from ..domain.exceptions import ValidationException
from ..domain.queries import QueryParams, Sort, SortOrder

logger = structlog.get_logger(__name__)

M = TypeVar("M", bound=BaseModel)

RANGE_KEYS = frozenset({"min", "max"})


# ---- Validation ----


def _format_error(error: Dict[str, Any]) -> str:
    location = ".".join(str(part) for part in error.get("loc", ()))
    message = error.get("msg", "invalid value")
    return f"{location}: {message}" if location else message


def validate_input(model_cls: Type[M], data: Any, entity_name: str, action: str) -> M:
    """
    Validate create/update input against its DTO model.

    Raises:
        ValidationException: With one human-readable reason per problem
    """
    if isinstance(data, model_cls):
        return data
    if isinstance(data, BaseModel):
        data = data.model_dump(exclude_unset=True)
    if not isinstance(data, Mapping):
        raise ValidationException(
            f"Invalid {entity_name} data for {action}",
            reasons=[f"expected an object, got {type(data).__name__}"],
        )
    try:
        return model_cls.model_validate(dict(data))
    except pydantic.ValidationError as e:
        reasons = [_format_error(error) for error in e.errors()]
        raise ValidationException(
            f"Invalid {entity_name} data for {action}",
            reasons=reasons,
            details={"entity": entity_name, "action": action},
        ) from e


# ---- In-memory querying ----


def get_field(item: Any, path: str) -> Any:
    """
    Resolve a dotted field path (``category.slug``) on a model or mapping.

    camelCase segments are accepted for model attributes.
    """
    value = item
    for segment in path.split("."):
        if value is None:
            return None
        if isinstance(value, Mapping):
            value = value.get(segment, value.get(to_snake(segment)))
        else:
            attribute = segment if hasattr(value, segment) else to_snake(segment)
            value = getattr(value, attribute, None)
    return value


def _plain(value: Any) -> Any:
    return value.value if isinstance(value, Enum) else value


def value_matches(actual: Any, expected: Any) -> bool:
    """
    Compare one field against a filter value.

    A list means membership, a ``{"min", "max"}`` mapping an inclusive range, a
    string against a string a case-insensitive substring match, anything else
    equality.
    """
    actual = _plain(actual)

    if isinstance(expected, (list, tuple, set, frozenset)):
        options = {_plain(option) for option in expected}
        if isinstance(actual, (list, tuple, set)):
            return any(_plain(value) in options for value in actual)
        return actual in options

    if isinstance(expected, Mapping) and expected and set(expected) <= RANGE_KEYS:
        if actual is None:
            return False
        low, high = expected.get("min"), expected.get("max")
        if low is not None and actual < low:
            return False
        if high is not None and actual > high:
            return False
        return True

    expected = _plain(expected)
    if isinstance(actual, str) and isinstance(expected, str):
        return expected.lower() in actual.lower()
    return actual == expected


def matches_filters(item: Any, filters: Optional[Mapping[str, Any]]) -> bool:
    """True if ``item`` satisfies every non-None filter."""
    if not filters:
        return True
    return all(
        value_matches(get_field(item, path), expected)
        for path, expected in filters.items()
        if expected is not None
    )


def sort_items(items: Iterable[Any], sort: Optional[Sort]) -> List[Any]:
    """Sort by a (dotted) field; items without the field always come last."""
    items = list(items)
    if sort is None:
        return items

    present = [item for item in items if get_field(item, sort.field) is not None]
    missing = [item for item in items if get_field(item, sort.field) is None]

    def sort_key(item: Any) -> Any:
        value = _plain(get_field(item, sort.field))
        return value.lower() if isinstance(value, str) else value

    present.sort(key=sort_key, reverse=sort.order == SortOrder.DESC)
    return present + missing


def contains_text(query: str, *values: Any) -> bool:
    needle = query.strip().lower()
    if not needle:
        return False
    for value in values:
        if isinstance(value, (list, tuple)):
            if any(needle in str(v).lower() for v in value):
                return True
        elif value is not None and needle in str(value).lower():
            return True
    return False


def slugify(text: str) -> str:
    return re.sub(r"[^a-z0-9]+", "-", text.lower()).strip("-")


# ---- Client sub-resources ----


@dataclass(frozen=True)
class SubResource:
    """
    A record list owned by a client (vehicles, payment methods, addresses).

    Attributes:
        collection: Attribute of the MockDataStore holding the records
        label: Entity name used in errors and logs
        segment: URL segment, both under ``/clients/{id}/`` and at the top level
        list_key: Envelope key of list responses
        item_key: Envelope key of single-record responses
        id_prefix: Prefix of generated mock ids
        exclusive_flag: Flag at most one record per client may carry
    """

    collection: str
    label: str
    segment: str
    list_key: str
    item_key: str
    id_prefix: str
    model: Type[BaseModel]
    create_model: Type[BaseModel]
    update_model: Type[BaseModel]
    exclusive_flag: str


VEHICLES = SubResource(
    collection="vehicles",
    label="Vehicle",
    segment="vehicles",
    list_key="vehicles",
    item_key="vehicle",
    id_prefix="vehicle",
    model=Vehicle,
    create_model=VehicleCreate,
    update_model=VehicleUpdate,
    exclusive_flag="is_primary",
)

PAYMENT_METHODS = SubResource(
    collection="payment_methods",
    label="PaymentMethod",
    segment="payment-methods",
    list_key="paymentMethods",
    item_key="paymentMethod",
    id_prefix="payment",
    model=PaymentMethod,
    create_model=PaymentMethodCreate,
    update_model=PaymentMethodUpdate,
    exclusive_flag="is_default",
)

ADDRESSES = SubResource(
    collection="addresses",
    label="Address",
    segment="addresses",
    list_key="addresses",
    item_key="address",
    id_prefix="address",
    model=ClientAddress,
    create_model=AddressCreate,
    update_model=AddressUpdate,
    exclusive_flag="is_default",
)


# ---- Base implementation ----


class BaseRepositoryImpl:
    """
    Behaviour common to the mock and API repositories.

    Each instance owns a private RepositoryCache. Reads go through ``_cached``;
    writes call ``_invalidate_entity`` once they succeeded so no later read sees
    pre-write data.
    """

    entity_name: str = "Entity"
    create_model: Type[BaseModel]
    update_model: Type[BaseModel]

    def __init__(
        self,
        config: Optional[RepositoryConfig] = None,
        cache: Optional[RepositoryCache] = None,
        max_cache_entries: int = DEFAULT_MAX_ENTRIES,
    ):
        self.config = config or RepositoryConfig()
        self.cache = cache or RepositoryCache(
            entity=self.entity_name,
            ttl_ms=self.config.cache_ttl_ms,
            enabled=self.config.cache_enabled,
            max_entries=max_cache_entries,
        )

    # Cache helpers

    async def _cached(self, operation: str, params: Any, loader: Callable[[], Awaitable[Any]]) -> Any:
        key = self.cache.get_cache_key(operation, params)
        cached = self.cache.get(key, CACHE_MISS)
        if cached is not CACHE_MISS:
            return cached

        # Invalidations during the load make the result stale for later reads
        generation = self.cache.generation
        value = await loader()
        self.cache.set(key, value, generation=generation)
        return value

    def _invalidate_entity(self) -> None:
        self.cache.invalidate(f"{self.entity_name}:")

    def clear_cache(self) -> None:
        self.cache.clear()

    async def refresh_cache(self) -> None:
        self.clear_cache()
        await self.find_all()  # type: ignore[attr-defined]
        logger.info("Repository cache refreshed", entity=self.entity_name)

    def get_cache_stats(self) -> Dict[str, Any]:
        return self.cache.get_stats()

    # Validation helpers

    def _validate_create(self, data: Any) -> Any:
        return validate_input(self.create_model, data, self.entity_name, "create")

    def _validate_update(self, data: Any) -> Any:
        return validate_input(self.update_model, data, self.entity_name, "update")

    def _coerce_params(self, params: Any) -> QueryParams:
        try:
            return QueryParams.coerce(params)
        except pydantic.ValidationError as e:
            raise ValidationException(
                f"Invalid query parameters for {self.entity_name}",
                reasons=[_format_error(error) for error in e.errors()],
            ) from e

    # Operations expressed through the abstract ones

    async def find_many(self, filters: Dict[str, Any]) -> List[Any]:
        return await self.find_all(QueryParams(filters=dict(filters)))  # type: ignore[attr-defined]

    async def find_one(self, filters: Dict[str, Any]) -> Optional[Any]:
        items = await self.find_many(filters)
        return items[0] if items else None

    async def exists(self, entity_id: str) -> bool:
        return await self.find_by_id(entity_id) is not None  # type: ignore[attr-defined]

    async def create_many(self, items: List[Any]) -> List[Any]:
        validated = [self._validate_create(item) for item in items]
        return [await self.create(item) for item in validated]  # type: ignore[attr-defined]

    async def update_many(self, filters: Dict[str, Any], data: Any) -> int:
        validated = self._validate_update(data)
        targets = await self.find_many(filters)
        for item in targets:
            await self.update(item.id, validated)  # type: ignore[attr-defined]
        return len(targets)

    async def delete_many(self, filters: Dict[str, Any]) -> int:
        targets = await self.find_many(filters)
        for item in targets:
            await self.delete(item.id)  # type: ignore[attr-defined]
        return len(targets)
