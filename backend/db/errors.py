"""Classification of driver-level integrity errors."""

from __future__ import annotations

from sqlalchemy.exc import IntegrityError

# asyncpg exposes the SQLSTATE, sqlite3 the extended result-code name.
_POSTGRES_UNIQUE = "23505"
_SQLITE_UNIQUE = ("SQLITE_CONSTRAINT_UNIQUE", "SQLITE_CONSTRAINT_PRIMARYKEY")


def is_unique_violation(error: IntegrityError) -> bool:
    """True when the insert collided with an existing unique key."""
    driver_error = error.orig
    if getattr(driver_error, "sqlstate", None) == _POSTGRES_UNIQUE:
        return True
    if getattr(driver_error, "sqlite_errorname", None) in _SQLITE_UNIQUE:
        return True
    text = str(driver_error).lower()
    return "unique constraint" in text or "duplicate key" in text
