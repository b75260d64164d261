"""Shared SQLAlchemy expression helpers for the content services."""

from __future__ import annotations

from collections.abc import Iterable
from typing import Any, cast

from sqlalchemy.engine import Result
from sqlalchemy.sql import ColumnElement


def eq(column: Any, value: Any) -> ColumnElement[bool]:
    """Typed equality expression helper."""
    return cast(ColumnElement[bool], column == value)


def in_(column: Any, values: Iterable[Any]) -> ColumnElement[bool]:
    """Typed membership expression helper."""
    return cast(ColumnElement[bool], cast(Any, column).in_(list(values)))


def desc(column: Any) -> Any:
    """Typed descending ordering helper."""
    return cast(Any, column).desc()


def asc(column: Any) -> Any:
    """Typed ascending ordering helper."""
    return cast(Any, column).asc()


def rowcount(result: Result[Any]) -> int:
    """Number of rows touched by an UPDATE or DELETE."""
    return int(cast(Any, result).rowcount or 0)
