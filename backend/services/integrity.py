"""Counter drift detection and repair.

The stores keep counters exact by construction; this module recomputes them
from the underlying rows so operators can verify that claim and fix rows
written by anything that bypassed the stores.
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable, Sequence
from dataclasses import dataclass
from typing import Any, cast

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.sql import ColumnElement, Select

from db.transactions import read_scope, transaction
from models import Comment, CommentLike, Post, PostLike

from . import counters
from .counters import CounterKind
from .common import eq, in_

logger = logging.getLogger(__name__)

Repairer = Callable[[AsyncSession, int, int], Awaitable[bool]]

_REPAIRERS: dict[CounterKind, Repairer] = {
    CounterKind.POST_LIKES: counters.set_post_like_count,
    CounterKind.POST_COMMENTS: counters.set_post_comment_count,
    CounterKind.COMMENT_LIKES: counters.set_comment_like_count,
    CounterKind.COMMENT_REPLIES: counters.set_comment_reply_count,
}


@dataclass(frozen=True, slots=True)
class CounterDrift:
    kind: CounterKind
    row_id: int
    stored: int
    actual: int


def _ne(column: Any, value: Any) -> ColumnElement[bool]:
    return cast(ColumnElement[bool], column != value)


def _drift_query(
    *,
    row_id: Any,
    stored: Any,
    child_key: Any,
    child_filter: Sequence[ColumnElement[bool]],
    row_filter: Sequence[ColumnElement[bool]],
    name: str,
) -> Select[Any]:
    totals = (
        select(child_key.label("target_id"), func.count().label("total"))
        .where(*child_filter)
        .group_by(child_key)
        .subquery(name)
    )
    actual = func.coalesce(totals.c.total, 0)
    return (
        select(row_id, stored, actual)
        .outerjoin(totals, eq(totals.c.target_id, row_id))
        .where(*row_filter, _ne(stored, actual))
        .order_by(row_id)
    )


async def find_counter_drift(
    session: AsyncSession,
    post_ids: Sequence[int] | None = None,
) -> list[CounterDrift]:
    """Return every stored counter that disagrees with its child rows.

    ``post_ids`` limits the audit to those posts and their comments.
    """
    post_scope: list[ColumnElement[bool]] = []
    comment_scope: list[ColumnElement[bool]] = []
    if post_ids is not None:
        post_scope.append(in_(Post.id, post_ids))
        comment_scope.append(in_(Comment.post_id, post_ids))

    comment_child = cast(Any, Comment).__table__.alias("child_comments")
    queries: list[tuple[CounterKind, Select[Any]]] = [
        (
            CounterKind.POST_LIKES,
            _drift_query(
                row_id=Post.id,
                stored=Post.like_count,
                child_key=PostLike.post_id,
                child_filter=(),
                row_filter=post_scope,
                name="post_like_totals",
            ),
        ),
        (
            CounterKind.POST_COMMENTS,
            _drift_query(
                row_id=Post.id,
                stored=Post.comment_count,
                child_key=Comment.post_id,
                child_filter=(),
                row_filter=post_scope,
                name="post_comment_totals",
            ),
        ),
        (
            CounterKind.COMMENT_LIKES,
            _drift_query(
                row_id=Comment.id,
                stored=Comment.like_count,
                child_key=CommentLike.comment_id,
                child_filter=(),
                row_filter=comment_scope,
                name="comment_like_totals",
            ),
        ),
        (
            CounterKind.COMMENT_REPLIES,
            _drift_query(
                row_id=Comment.id,
                stored=Comment.reply_count,
                child_key=comment_child.c.parent_id,
                child_filter=(cast(ColumnElement[bool], comment_child.c.parent_id.is_not(None)),),
                row_filter=comment_scope,
                name="comment_reply_totals",
            ),
        ),
    ]

    drift: list[CounterDrift] = []
    async with read_scope(session, operation="find_counter_drift"):
        for kind, query in queries:
            result = await session.execute(query)
            for row_id, stored, actual in result.all():
                drift.append(
                    CounterDrift(
                        kind=kind,
                        row_id=int(row_id),
                        stored=int(stored),
                        actual=int(actual),
                    )
                )
    if drift:
        logger.warning("Counter drift detected", extra={"drift_count": len(drift)})
    return drift


async def repair_counter_drift(
    session: AsyncSession,
    drift: Sequence[CounterDrift],
) -> int:
    """Overwrite drifted counters with their recomputed values in one transaction.

    Returns the number of rows updated.
    """
    repaired = 0
    async with transaction(session, operation="repair_counter_drift"):
        for item in drift:
            if await _REPAIRERS[item.kind](session, item.row_id, item.actual):
                repaired += 1
    logger.info("Repaired counter drift", extra={"drift_count": repaired})
    return repaired
