from __future__ import annotations

import math
import re
from datetime import date, datetime
from decimal import Decimal, InvalidOperation

from portal.filtering.attributes import Kind, ResolvedAttribute
from portal.filtering.errors import FilterValueError

_DATE_RE = re.compile(r"^\d{4}-\d{2}-\d{2}$", re.ASCII)
_DATETIME_RE = re.compile(r"^\d{4}-\d{2}-\d{2}(T\d{2}:\d{2}(:\d{2}(\.\d{1,6})?)?)?$", re.ASCII)
# Plain ASCII digits only: no locale separators, no "1_000", no "NaN"
_INTEGER_RE = re.compile(r"^[+-]?\d+$", re.ASCII)
_DECIMAL_RE = re.compile(r"^[+-]?(\d+(\.\d*)?|\.\d+)([eE][+-]?\d+)?$", re.ASCII)
# Signed 64-bit, the widest integer column the databases store
_INTEGER_MIN = -(2**63)
_INTEGER_MAX = 2**63 - 1


def _coerce_bool(attribute: ResolvedAttribute, raw: str) -> bool:
    text = raw.lower()
    if text == "true":
        return True
    if text == "false":
        return False
    raise FilterValueError(attribute.dotted, raw, Kind.BOOL.value)


def _coerce_enum(attribute: ResolvedAttribute, raw: str):
    enum_class = attribute.spec.enum_class
    if enum_class is None or raw not in enum_class.__members__:
        raise FilterValueError(attribute.dotted, raw, Kind.ENUM.value)
    return enum_class[raw]


def _coerce_number(attribute: ResolvedAttribute, raw: str):
    kind = attribute.kind
    text = raw.strip()
    pattern = _INTEGER_RE if kind is Kind.INTEGER else _DECIMAL_RE
    if not pattern.fullmatch(text):
        raise FilterValueError(attribute.dotted, raw, kind.value)
    try:
        if kind is Kind.INTEGER:
            value = int(text)
            if not _INTEGER_MIN <= value <= _INTEGER_MAX:
                raise FilterValueError(attribute.dotted, raw, kind.value)
            return value
        if kind is Kind.FLOAT:
            value = float(text)
            if math.isinf(value):
                raise FilterValueError(attribute.dotted, raw, kind.value)
            return value
        return Decimal(text)
    except (ValueError, InvalidOperation):
        raise FilterValueError(attribute.dotted, raw, kind.value)


def _coerce_date(attribute: ResolvedAttribute, raw: str) -> date:
    if not _DATE_RE.fullmatch(raw):
        raise FilterValueError(attribute.dotted, raw, Kind.DATE.value)
    try:
        return date.fromisoformat(raw)
    except ValueError:
        raise FilterValueError(attribute.dotted, raw, Kind.DATE.value)


def _coerce_datetime(attribute: ResolvedAttribute, raw: str) -> datetime:
    if not _DATETIME_RE.fullmatch(raw):
        raise FilterValueError(attribute.dotted, raw, Kind.DATETIME.value)
    try:
        return datetime.fromisoformat(raw)
    except ValueError:
        raise FilterValueError(attribute.dotted, raw, Kind.DATETIME.value)


def coerce_value(attribute: ResolvedAttribute, raw: str):
    """Convert ``raw`` into the Python type of the target attribute.

    Dispatch is on the attribute's declared kind only, never on what ``raw``
    looks like. String targets get ``raw`` back unchanged.
    """
    kind = attribute.kind
    if kind is Kind.BOOL:
        return _coerce_bool(attribute, raw)
    if kind is Kind.ENUM:
        return _coerce_enum(attribute, raw)
    if kind.is_numeric:
        return _coerce_number(attribute, raw)
    if kind is Kind.DATE:
        return _coerce_date(attribute, raw)
    if kind is Kind.DATETIME:
        return _coerce_datetime(attribute, raw)
    if kind is Kind.RELATION:
        raise FilterValueError(attribute.dotted, raw, "scalar attribute required")
    return raw
