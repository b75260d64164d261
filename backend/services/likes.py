"""Like ledgers: one row per (target, user) for posts and for comments."""

from __future__ import annotations

from collections.abc import Callable, Iterable, Sequence
from dataclasses import dataclass
from typing import Any, cast

from sqlalchemy import delete, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.sql import ColumnElement, Select
from sqlmodel import SQLModel

from core.errors import AlreadyLikedError, NotLikedError
from db.errors import is_unique_violation
from models import CommentLike, PostLike

from .common import eq, in_, rowcount


@dataclass(frozen=True, slots=True)
class LikeLedger:
    """Ledger operations shared by the post and comment like tables.

    ``add`` and ``remove`` never commit; they are meant to run inside the
    caller's transaction together with the matching counter update.
    """

    model: type[SQLModel]
    target_column: Any
    user_column: Any
    build_row: Callable[[int, str], SQLModel]

    def _match(self, target_id: int, user_id: str) -> tuple[ColumnElement[bool], ColumnElement[bool]]:
        return eq(self.target_column, target_id), eq(self.user_column, user_id)

    async def has_liked(self, session: AsyncSession, target_id: int, user_id: str) -> bool:
        result = await session.execute(
            select(self.target_column)
            .where(*self._match(target_id, user_id))
            .limit(1)
        )
        return result.scalar_one_or_none() is not None

    async def liked_target_ids(
        self,
        session: AsyncSession,
        target_ids: Sequence[int],
        user_id: str | None,
    ) -> set[int]:
        """Return the subset of ``target_ids`` that ``user_id`` liked."""
        if not target_ids or user_id is None:
            return set()
        result = await session.execute(
            select(self.target_column).where(
                in_(self.target_column, target_ids),
                eq(self.user_column, user_id),
            )
        )
        return {int(row[0]) for row in result.all()}

    async def add(self, session: AsyncSession, target_id: int, user_id: str) -> None:
        """Insert the ledger row or raise ``AlreadyLikedError``."""
        if await self.has_liked(session, target_id, user_id):
            raise AlreadyLikedError(target_id, user_id)

        session.add(self.build_row(target_id, user_id))
        try:
            await session.flush()
        except IntegrityError as exc:
            # A concurrent like won the race to the unique constraint.
            if not is_unique_violation(exc):
                raise
            raise AlreadyLikedError(target_id, user_id) from exc

    async def remove(self, session: AsyncSession, target_id: int, user_id: str) -> None:
        """Delete the ledger row or raise ``NotLikedError``."""
        if not await self.has_liked(session, target_id, user_id):
            raise NotLikedError(target_id, user_id)

        result = await session.execute(
            delete(self.model).where(*self._match(target_id, user_id))
        )
        if rowcount(result) == 0:
            raise NotLikedError(target_id, user_id)

    async def delete_for_targets(self, session: AsyncSession, target_ids: Iterable[int]) -> int:
        ids = list(target_ids)
        if not ids:
            return 0
        result = await session.execute(
            delete(self.model).where(in_(self.target_column, ids))
        )
        return rowcount(result)

    async def delete_for_target_query(self, session: AsyncSession, target_ids: Select[Any]) -> int:
        """Delete every row whose target is produced by ``target_ids``."""
        result = await session.execute(
            delete(self.model)
            .where(cast(Any, self.target_column).in_(target_ids))
            .execution_options(synchronize_session=False)
        )
        return rowcount(result)


POST_LIKES = LikeLedger(
    model=PostLike,
    target_column=PostLike.post_id,
    user_column=PostLike.user_id,
    build_row=lambda post_id, user_id: PostLike(post_id=post_id, user_id=user_id),
)

COMMENT_LIKES = LikeLedger(
    model=CommentLike,
    target_column=CommentLike.comment_id,
    user_column=CommentLike.user_id,
    build_row=lambda comment_id, user_id: CommentLike(comment_id=comment_id, user_id=user_id),
)
