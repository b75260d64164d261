"""Typed relative updates for the denormalized counters.

Every function issues ``counter = counter + delta`` so concurrent writers
never overwrite each other with a previously read value. Callers run these
inside the same transaction as the row change that motivated them. Each
function returns True when the target row existed.
"""

from __future__ import annotations

from enum import Enum
from typing import Any, cast

from sqlalchemy import update
from sqlalchemy.ext.asyncio import AsyncSession

from models import Comment, Post

from .common import eq, rowcount


class CounterKind(str, Enum):
    POST_LIKES = "posts.like_count"
    POST_COMMENTS = "posts.comment_count"
    COMMENT_LIKES = "comments.like_count"
    COMMENT_REPLIES = "comments.reply_count"


async def increment_post_like_count(
    session: AsyncSession, post_id: int, delta: int = 1
) -> bool:
    result = await session.execute(
        update(Post)
        .where(eq(Post.id, post_id))
        .values(like_count=cast(Any, Post.like_count) + delta)
    )
    return rowcount(result) > 0


async def increment_post_comment_count(
    session: AsyncSession, post_id: int, delta: int = 1
) -> bool:
    result = await session.execute(
        update(Post)
        .where(eq(Post.id, post_id))
        .values(comment_count=cast(Any, Post.comment_count) + delta)
    )
    return rowcount(result) > 0


async def increment_post_view_count(
    session: AsyncSession, post_id: int, delta: int = 1
) -> bool:
    result = await session.execute(
        update(Post)
        .where(eq(Post.id, post_id))
        .values(view_count=cast(Any, Post.view_count) + delta)
    )
    return rowcount(result) > 0


async def increment_comment_like_count(
    session: AsyncSession, comment_id: int, delta: int = 1
) -> bool:
    result = await session.execute(
        update(Comment)
        .where(eq(Comment.id, comment_id))
        .values(like_count=cast(Any, Comment.like_count) + delta)
    )
    return rowcount(result) > 0


async def increment_comment_reply_count(
    session: AsyncSession, comment_id: int, delta: int = 1
) -> bool:
    result = await session.execute(
        update(Comment)
        .where(eq(Comment.id, comment_id))
        .values(reply_count=cast(Any, Comment.reply_count) + delta)
    )
    return rowcount(result) > 0


# Absolute setters are reserved for the integrity repair path.


async def set_post_like_count(session: AsyncSession, post_id: int, value: int) -> bool:
    result = await session.execute(
        update(Post).where(eq(Post.id, post_id)).values(like_count=value)
    )
    return rowcount(result) > 0


async def set_post_comment_count(session: AsyncSession, post_id: int, value: int) -> bool:
    result = await session.execute(
        update(Post).where(eq(Post.id, post_id)).values(comment_count=value)
    )
    return rowcount(result) > 0


async def set_comment_like_count(session: AsyncSession, comment_id: int, value: int) -> bool:
    result = await session.execute(
        update(Comment).where(eq(Comment.id, comment_id)).values(like_count=value)
    )
    return rowcount(result) > 0


async def set_comment_reply_count(session: AsyncSession, comment_id: int, value: int) -> bool:
    result = await session.execute(
        update(Comment).where(eq(Comment.id, comment_id)).values(reply_count=value)
    )
    return rowcount(result) > 0
