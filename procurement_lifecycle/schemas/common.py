from typing import Any, Generic, List, TypeVar, Optional
from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

T = TypeVar("T")


class CamelModel(BaseModel):
    """Snake_case fields on the Python side, camelCase on the wire."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class PaginationMeta(CamelModel):
    page: int
    limit: int
    total: int = 0
    total_pages: int = 1
    has_next: bool = False
    has_prev: bool = False


class ApiEnvelope(CamelModel):
    success: bool = False
    data: Any = None
    message: Optional[str] = None
    pagination: Optional[PaginationMeta] = None


class Page(CamelModel, Generic[T]):
    data: List[T] = Field(default_factory=list)  # type: ignore[assignment]
    pagination: Optional[PaginationMeta] = None


def build_pagination(page: int, limit: int, total: int) -> PaginationMeta:
    total_pages = max(1, (total + limit - 1) // limit)
    return PaginationMeta(
        page=page,
        limit=limit,
        total=total,
        total_pages=total_pages,
        has_next=page < total_pages,
        has_prev=page > 1,
    )
