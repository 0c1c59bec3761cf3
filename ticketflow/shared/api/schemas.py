"""
Shared API Schemas
==================

Response envelopes shared by the routers.
"""

from typing import Generic, List, TypeVar

from pydantic import BaseModel, Field

T = TypeVar("T")


class PagedResult(BaseModel, Generic[T]):
    """One page of a listing plus the total count of matching rows."""
    page: int = Field(..., ge=1, description="1-based page number")
    page_size: int = Field(..., ge=1, description="Requested page size")
    total_items: int = Field(..., ge=0, description="Rows matching the filters")
    items: List[T] = Field(default_factory=list)


def clamp_paging(page: int, page_size: int, max_page_size: int) -> tuple[int, int]:
    """Normalize paging arguments the way every listing endpoint does."""
    page = max(1, page)
    page_size = min(max(1, page_size), max_page_size)
    return page, page_size
