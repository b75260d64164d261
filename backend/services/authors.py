"""Batched author lookups for hydration."""

from __future__ import annotations

from collections.abc import Iterable
from typing import Any, cast

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from models import User

from .common import in_
from .schemas import AuthorInfo


async def load_authors(session: AsyncSession, author_ids: Iterable[str]) -> dict[str, AuthorInfo]:
    """Return author info keyed by user id; unknown ids are simply absent."""
    ids = {author_id for author_id in author_ids if author_id}
    if not ids:
        return {}
    result = await session.execute(
        select(cast(Any, User)).where(in_(User.id, sorted(ids)))
    )
    return {user.id: AuthorInfo.from_user(user) for user in result.scalars().all()}
