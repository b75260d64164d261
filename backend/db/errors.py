"""Integrity error classification.

The like ledgers rely on the unique constraint over (target, user) as the
final arbiter between concurrent likes; ``is_unique_violation`` tells that
conflict apart from other integrity failures so it can surface as
``AlreadyLikedError``.
"""

from __future__ import annotations

from sqlalchemy.exc import IntegrityError


def is_unique_violation(error: IntegrityError) -> bool:
    """Return True when ``error`` comes from a duplicate row on a unique constraint."""
    driver_error = getattr(error, "orig", None)
    sqlstate = getattr(driver_error, "sqlstate", None) or getattr(driver_error, "pgcode", None)
    if sqlstate == "23505":
        return True
    message = str(driver_error or error).lower()
    return "duplicate key" in message or "unique constraint" in message


__all__ = ["is_unique_violation"]
