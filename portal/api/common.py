from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, timezone
from decimal import Decimal, InvalidOperation

from fastapi import HTTPException, Query, Request


@dataclass(frozen=True)
class ListParams:
    query: list[tuple[str, str]]
    page: int
    size: int | None
    sort_by: str | None
    direction: str | None


def list_params(
    request: Request,
    page: int = Query(0),
    size: int | None = Query(None),
    sort_by: str | None = Query(None, alias="sortBy"),
    direction: str | None = Query(None),
) -> ListParams:
    return ListParams(
        query=request.query_params.multi_items(),
        page=page,
        size=size,
        sort_by=sort_by,
        direction=direction,
    )


def to_float(value) -> float | None:
    if value is None:
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def to_iso(value: date | datetime | None) -> str | None:
    return value.isoformat() if value else None


def required_str(payload: dict, field: str, max_length: int | None = None) -> str:
    value = str(payload.get(field) or "").strip()
    if not value:
        raise HTTPException(status_code=400, detail=f'Field "{field}" is required')
    if max_length is not None and len(value) > max_length:
        raise HTTPException(status_code=400, detail=f'Field "{field}" cannot exceed {max_length} characters')
    return value


def optional_str(payload: dict, field: str, max_length: int | None = None) -> str | None:
    value = str(payload.get(field) or "").strip()
    if not value:
        return None
    if max_length is not None and len(value) > max_length:
        raise HTTPException(status_code=400, detail=f'Field "{field}" cannot exceed {max_length} characters')
    return value


def int_or_400(raw, field: str) -> int:
    if raw is None or raw == "":
        raise HTTPException(status_code=400, detail=f'Field "{field}" is required')
    if isinstance(raw, bool):
        raise HTTPException(status_code=400, detail=f'Invalid field "{field}"')
    try:
        return int(raw)
    except (TypeError, ValueError):
        raise HTTPException(status_code=400, detail=f'Invalid field "{field}"')


def decimal_or_400(raw, field: str, *, required: bool = True) -> Decimal | None:
    if raw is None or raw == "":
        if required:
            raise HTTPException(status_code=400, detail=f'Field "{field}" is required')
        return None
    try:
        value = Decimal(str(raw))
    except InvalidOperation:
        raise HTTPException(status_code=400, detail=f'Field "{field}" must be a number')
    if not value.is_finite() or value < 0:
        raise HTTPException(status_code=400, detail=f'Field "{field}" must be a positive number')
    return value


def date_or_400(raw, field: str, *, required: bool = True) -> date | None:
    if raw is None or raw == "":
        if required:
            raise HTTPException(status_code=400, detail=f'Field "{field}" is required')
        return None
    try:
        return date.fromisoformat(str(raw))
    except ValueError:
        raise HTTPException(status_code=400, detail=f'Field "{field}" must be a YYYY-MM-DD date')


def datetime_or_400(raw, field: str, *, required: bool = True) -> datetime | None:
    if raw is None or raw == "":
        if required:
            raise HTTPException(status_code=400, detail=f'Field "{field}" is required')
        return None
    try:
        value = datetime.fromisoformat(str(raw).replace("Z", "+00:00"))
    except ValueError:
        raise HTTPException(status_code=400, detail=f'Field "{field}" must be an ISO date-time')
    if value.tzinfo is not None:
        value = value.astimezone(timezone.utc).replace(tzinfo=None)
    return value


def enum_or_400(enum_class, raw, field: str, default):
    if raw is None or raw == "":
        return default
    key = str(raw).strip().upper()
    if key not in enum_class.__members__:
        raise HTTPException(status_code=400, detail=f'Invalid field "{field}"')
    return enum_class[key]
