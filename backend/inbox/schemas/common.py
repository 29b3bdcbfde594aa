"""Response envelope shared by every inbox endpoint."""

from pydantic import BaseModel
from pydantic.alias_generators import to_camel
from typing import Generic, Optional, TypeVar

T = TypeVar("T")


class CamelModel(BaseModel):
    """Base schema exposing snake_case attributes as camelCase JSON keys."""

    class Config:
        alias_generator = to_camel
        populate_by_name = True
        from_attributes = True


class Pagination(CamelModel):
    """Pagination block; total is the size of the returned page."""
    limit: int
    offset: int
    total: int


class ApiResponse(CamelModel, Generic[T]):
    """Envelope: {success, data?, message?, pagination?}."""
    success: bool = True
    data: Optional[T] = None
    message: Optional[str] = None
    pagination: Optional[Pagination] = None


class UnreadCountResponse(CamelModel):
    unread_count: int
