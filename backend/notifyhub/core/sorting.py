"""Ordering helper for feed queries."""

from __future__ import annotations

from collections.abc import Iterable

from sqlalchemy import asc, desc
from sqlalchemy.orm import Query

from notifyhub.core.database import Base


def apply_order_by(
    query: Query,  # type: ignore[type-arg]
    model: type[Base],
    order_by: str | None,
    allowed_fields: Iterable[str] = ("created_at", "updated_at", "type", "is_read"),
    default_field: str = "updated_at",
    default_direction: str = "desc",
) -> Query:  # type: ignore[type-arg]
    """Order a query by a client supplied ``"field:direction"`` string.

    Fields outside ``allowed_fields`` fall back to ``default_field``; a bad
    direction falls back to ``default_direction``. ``id`` is always the
    secondary key so pages stay stable when timestamps tie.
    """
    field = default_field
    direction = default_direction

    if order_by:
        candidate_field, _, candidate_direction = order_by.partition(":")
        if candidate_field in allowed_fields and hasattr(model, candidate_field):
            field = candidate_field
            direction = candidate_direction if candidate_direction in ("asc", "desc") else "asc"

    order_func = asc if direction == "asc" else desc
    return query.order_by(order_func(getattr(model, field)), order_func(model.id))
