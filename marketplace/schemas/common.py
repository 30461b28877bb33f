"""Common response schemas"""

from math import ceil
from pydantic import BaseModel
from typing import Optional, Generic, TypeVar, List

T = TypeVar('T')


class SuccessResponse(BaseModel):
    """Acknowledgement for actions that return no resource"""
    success: bool = True
    message: Optional[str] = None


class PaginatedResponse(BaseModel, Generic[T]):
    """One page of a list query plus the total matching count"""
    success: bool = True
    data: List[T]
    total: int
    page: int
    limit: int
    pages: int

    @classmethod
    def of(cls, items: List[T], total: int, page: int, limit: int) -> "PaginatedResponse[T]":
        return cls(
            data=items,
            total=total,
            page=page,
            limit=limit,
            pages=ceil(total / limit) if total > 0 else 1,
        )
