from typing import Generic, List, TypeVar

from pydantic import BaseModel, ConfigDict

D = TypeVar("D")


class PaginatedResponse(BaseModel, Generic[D]):
    model_config = ConfigDict(frozen=True)

    items: List[D]
    page_index: int
    page_size: int
    total_items: int
    total_pages: int
    is_first: bool
    is_last: bool


class ErrorResponse(BaseModel):
    detail: str
    field: str | None = None
    request_id: str | None = None

