from __future__ import annotations

import enum
from dataclasses import dataclass

from portal.core.config import settings
from portal.filtering.attributes import EntitySchema, Kind, resolve_path, schema_for
from portal.filtering.errors import FilterValueError


class SortDirection(str, enum.Enum):
    ASC = "ASC"
    DESC = "DESC"

    @classmethod
    def parse(cls, raw: str | None) -> SortDirection:
        return cls.ASC if str(raw or "").upper() == cls.ASC.value else cls.DESC


@dataclass(frozen=True)
class PagingDescriptor:
    page_index: int
    page_size: int
    sort_field: str
    sort_direction: SortDirection

    @property
    def offset(self) -> int:
        return self.page_index * self.page_size

    @property
    def sort_path(self) -> tuple[str, ...]:
        return tuple(self.sort_field.split("."))


def build_paging(
    page_index: int = 0,
    page_size: int | None = None,
    sort_field: str | None = None,
    sort_direction: str | None = None,
    schema: EntitySchema | type | None = None,
) -> PagingDescriptor:
    """Clamp paging input into a descriptor; never rejects a page size, only caps it.

    With ``schema`` the sort field is resolved up front so a typo fails as a
    client error instead of at query time.
    """
    size = settings.PAGE_SIZE_DEFAULT if page_size is None else int(page_size)
    size = max(1, min(size, settings.PAGE_SIZE_MAX))
    field = sort_field or settings.SORT_DEFAULT_FIELD
    direction = SortDirection.parse(settings.SORT_DEFAULT_DIRECTION if sort_direction is None else sort_direction)
    if schema is not None:
        attribute = resolve_path(schema_for(schema), field)
        if attribute.kind is Kind.RELATION:
            raise FilterValueError(field, field, "sort requires a scalar attribute")
    return PagingDescriptor(
        page_index=max(0, int(page_index)),
        page_size=size,
        sort_field=field,
        sort_direction=direction,
    )
