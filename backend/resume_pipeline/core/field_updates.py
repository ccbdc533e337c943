"""
Whitelisted column updates

Partial updates are built from a fixed set of column names checked against the
mapped table when the builder is created, so an unknown or misspelled field
fails at import time instead of producing broken SQL at runtime.
"""
from typing import Any, Dict, Iterable, Mapping

from sqlalchemy import update
from sqlalchemy.sql.dml import Update


class FieldUpdateBuilder:
    """Build UPDATE statements restricted to a whitelist of columns"""

    def __init__(self, model, allowed: Iterable[str]):
        self.model = model
        self.allowed = frozenset(allowed)
        columns = set(model.__table__.columns.keys())
        unknown = self.allowed - columns
        if unknown:
            raise ValueError(
                f"{model.__name__} has no column(s): {', '.join(sorted(unknown))}"
            )

    def values(self, changes: Mapping[str, Any]) -> Dict[str, Any]:
        rejected = set(changes) - self.allowed
        if rejected:
            raise ValueError(
                f"Field(s) not updatable on {self.model.__name__}: {', '.join(sorted(rejected))}"
            )
        return dict(changes)

    def statement(self, changes: Mapping[str, Any], *criteria) -> Update:
        values = self.values(changes)
        if not values:
            raise ValueError("No fields to update")
        return update(self.model).where(*criteria).values(**values)

    def apply(self, instance, changes: Mapping[str, Any]) -> None:
        """Assign whitelisted fields onto a loaded instance"""
        for key, value in self.values(changes).items():
            setattr(instance, key, value)
