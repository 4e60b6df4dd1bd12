"""
Detect a stale SQLite schema (tables missing columns the models now declare).
Used by create_schema to exit non-zero instead of failing later at runtime.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, List

from sqlalchemy import inspect

from models.base import Base

if TYPE_CHECKING:
    from sqlalchemy.engine import Connection


def find_schema_mismatches(connection: "Connection") -> List[str]:
    """Return one message per existing table that lacks model columns.

    Tables that do not exist yet are not a mismatch; create_all adds them.
    Run through ``AsyncConnection.run_sync``.
    """
    inspector = inspect(connection)
    problems = []
    for name, table in Base.metadata.tables.items():
        if not inspector.has_table(name):
            continue
        current = {c["name"] for c in inspector.get_columns(name)}
        missing = set(table.columns.keys()) - current
        if missing:
            problems.append(f"Table {name!r} is missing column(s): {sorted(missing)}")
    return problems
