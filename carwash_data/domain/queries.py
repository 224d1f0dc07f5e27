"""
Query and result types shared by every list-read operation.
"""

from enum import Enum
from typing import Any, Dict, Generic, List, Mapping, Optional, TypeVar, Union

from pydantic import BaseModel, ConfigDict, Field

T = TypeVar("T")

DEFAULT_PAGE_SIZE = 10


class SortOrder(str, Enum):
    ASC = "asc"
    DESC = "desc"


class Pagination(BaseModel):
    page: int = Field(default=1, ge=1)
    limit: int = Field(default=DEFAULT_PAGE_SIZE, ge=1)
    offset: Optional[int] = Field(default=None, ge=0)

    @property
    def start(self) -> int:
        """Index of the first item of the page; an explicit offset wins."""
        if self.offset is not None:
            return self.offset
        return (self.page - 1) * self.limit


class Sort(BaseModel):
    field: str
    order: SortOrder = SortOrder.ASC


class QueryParams(BaseModel):
    """
    Parameters of a list read.

    A missing field means no constraint: no filters, no paging, natural order.
    """

    model_config = ConfigDict(extra="forbid")

    filters: Optional[Dict[str, Any]] = None
    pagination: Optional[Pagination] = None
    sort: Optional[Sort] = None
    include: Optional[List[str]] = None

    @classmethod
    def coerce(cls, params: Union["QueryParams", Mapping[str, Any], None]) -> "QueryParams":
        """Accept an instance, a plain mapping of the same shape, or None."""
        if params is None:
            return cls()
        if isinstance(params, cls):
            return params
        return cls.model_validate(dict(params))

    def cache_params(self) -> Dict[str, Any]:
        """Deterministic, JSON-ready form used for cache keys."""
        return self.model_dump(mode="json", exclude_none=True)


class PaginatedResult(BaseModel, Generic[T]):
    """
    One page of results.

    Invariants: ``len(data) <= limit``, ``has_next == (page * limit < total)``
    and ``has_prev == (page > 1)``.
    """

    data: List[T]
    total: int
    page: int
    limit: int
    has_next: bool
    has_prev: bool

    @classmethod
    def from_items(cls, items: List[T], pagination: Optional[Pagination] = None) -> "PaginatedResult[T]":
        """Slice a complete, already filtered and sorted list into one page."""
        pagination = pagination or Pagination()
        total = len(items)
        start = pagination.start
        page_data = items[start:start + pagination.limit]
        return cls.build(page_data, total, pagination.page, pagination.limit)

    @classmethod
    def build(cls, data: List[T], total: int, page: int, limit: int) -> "PaginatedResult[T]":
        """Assemble a page, deriving the navigation flags from the counts."""
        return cls(
            data=list(data)[:limit],
            total=total,
            page=page,
            limit=limit,
            has_next=page * limit < total,
            has_prev=page > 1,
        )
