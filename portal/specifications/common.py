from __future__ import annotations

from portal.filtering.attributes import resolve_path, schema_for
from portal.filtering.expressions import Eq, Expr


def owned_by(model: type, user_id: int, field: str = "freelancer_id") -> Expr:
    return Eq(resolve_path(schema_for(model), field), user_id)
