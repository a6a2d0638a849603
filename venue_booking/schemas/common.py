"""Shared schema bases and response envelopes."""

from typing import Generic, Sequence, TypeVar

from pydantic import BaseModel, ConfigDict

T = TypeVar("T")


class BaseSchema(BaseModel):
    """Base schema reading from ORM objects."""

    model_config = ConfigDict(
        from_attributes=True,
        populate_by_name=True,
    )


class PaginatedResponse(BaseModel, Generic[T]):
    """One page of a listing or search, with the size of the whole result."""

    items: list[T]
    total: int
    page: int
    page_size: int
    total_pages: int

    @classmethod
    def build(
        cls, items: Sequence[T], total: int, page: int, page_size: int
    ) -> "PaginatedResponse[T]":
        """Wrap a page of items, deriving the page count from the total."""
        return cls(
            items=list(items),
            total=total,
            page=page,
            page_size=page_size,
            total_pages=(total + page_size - 1) // page_size,
        )


class ErrorResponse(BaseModel):
    """Error body: a stable error code and a human readable message."""

    error: str
    detail: str | None = None


class SuccessResponse(BaseModel):
    """Acknowledgement for operations with nothing else to return."""

    success: bool = True
    message: str
