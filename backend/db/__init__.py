"""Database helpers."""

from .errors import is_unique_violation
from .session import AsyncSessionMaker, async_engine
from .transactions import read_scope, transaction

__all__ = [
    "async_engine",
    "AsyncSessionMaker",
    "is_unique_violation",
    "transaction",
    "read_scope",
]
