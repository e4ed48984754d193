from typing import Generic, Optional, TypeVar
from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel
from sqlmodel import SQLModel


T = TypeVar("T")


class ApiModel(SQLModel):
    """
    Base DTO. Python attributes are snake_case, JSON on the wire is camelCase;
    either spelling is accepted on input.
    """
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )


class ApiResponse(BaseModel, Generic[T]):
    """Uniform envelope returned by every route."""
    success: bool = True
    message: str
    data: Optional[T] = None


class Pagination(ApiModel):
    current_page: int
    total_pages: int
    total_items: int
    items_per_page: int
    has_next_page: bool
    has_prev_page: bool
