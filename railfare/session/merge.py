"""Accumulate query constraints across the turns of one conversation."""

from typing import Any, Dict, Optional

from railfare.types import QueryConstraint

PAGINATION_FIELDS = ("segment", "more")


def merge_constraints(previous: Optional[QueryConstraint], update: QueryConstraint) -> QueryConstraint:
    """Overlay the fields explicitly set on ``update`` onto ``previous``.

    - a date clears a previous month and a month clears a previous date
    - pagination is never carried over, it only comes from the update
    """
    merged: Dict[str, Any] = previous.model_dump(exclude=set(PAGINATION_FIELDS)) if previous else {}
    changes = update.model_dump(exclude_unset=True)

    if changes.get("date") is not None:
        merged.pop("month", None)
    if changes.get("month") is not None:
        merged.pop("date", None)

    merged.update(changes)
    for name in PAGINATION_FIELDS:
        merged[name] = getattr(update, name)
    return QueryConstraint.model_validate(merged)


def next_page(constraint: QueryConstraint) -> QueryConstraint:
    """Constraint asking for the following page of "more" results."""
    if not constraint.more:
        return constraint.model_copy(update={"more": True, "segment": 0})
    return constraint.model_copy(update={"segment": constraint.segment + 1})
