"""Transaction boundary used by every multi-row mutation."""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from sqlalchemy.exc import DBAPIError, OperationalError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from core.errors import StoreFailure

logger = logging.getLogger(__name__)


@asynccontextmanager
async def transaction(session: AsyncSession, *, operation: str) -> AsyncIterator[AsyncSession]:
    """Run the enclosed statements as one atomic unit.

    Commits when the block exits normally. Any exception rolls the whole unit
    back; SQLAlchemy errors are re-raised as ``StoreFailure`` and domain
    errors propagate unchanged.
    """
    try:
        yield session
        await session.commit()
    except SQLAlchemyError as exc:
        await session.rollback()
        if isinstance(exc, OperationalError):
            reason = "operational error"
        elif isinstance(exc, DBAPIError):
            reason = "driver error"
        else:
            reason = "sqlalchemy error"
        logger.error(
            "Transaction failed",
            extra={"operation": operation, "reason": reason},
            exc_info=exc,
        )
        raise StoreFailure(f"{operation} failed: {reason}") from exc
    except BaseException:
        await session.rollback()
        raise


@asynccontextmanager
async def read_scope(session: AsyncSession, *, operation: str) -> AsyncIterator[AsyncSession]:
    """Run pure reads and release the implicit transaction afterwards."""
    try:
        yield session
    except SQLAlchemyError as exc:
        await session.rollback()
        logger.error(
            "Read failed",
            extra={"operation": operation},
            exc_info=exc,
        )
        raise StoreFailure(f"{operation} failed") from exc
    except BaseException:
        await session.rollback()
        raise
    else:
        await session.commit()
