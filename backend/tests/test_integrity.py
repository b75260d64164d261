"""Tests for counter drift detection and repair."""

import logging

import pytest
from sqlalchemy import update
from sqlalchemy.ext.asyncio import AsyncSession

from models import Comment, Post
from services import CommentStore, CounterKind, PostStore, find_counter_drift, repair_counter_drift


async def _seed_thread(session: AsyncSession, author_id: str, fan_id: str) -> tuple[int, int, int]:
    posts = PostStore(session)
    comments = CommentStore(session)
    post_id = await posts.create(author_id, "audited", ["a.jpg"])
    await posts.like(post_id, fan_id)
    root = await comments.create(post_id, fan_id, "root")
    reply = await comments.create(post_id, author_id, "reply", parent_id=root)
    await comments.like(reply, fan_id)
    await comments.create(post_id, fan_id, "deeper", parent_id=reply)
    return post_id, root, reply


@pytest.mark.asyncio
async def test_store_operations_leave_no_drift(db_session: AsyncSession, make_user):
    author = await make_user("author")
    fan = await make_user("fan")
    post_id, root, reply = await _seed_thread(db_session, author.id, fan.id)
    comments = CommentStore(db_session)
    await comments.unlike(reply, fan.id)
    await comments.delete(reply)
    await PostStore(db_session).unlike(post_id, fan.id)

    assert await find_counter_drift(db_session) == []
    assert (await comments.get_by_id(root, None)).reply_count == 0


@pytest.mark.asyncio
async def test_detects_and_repairs_corrupted_counters(
    db_session: AsyncSession,
    session_maker,
    make_user,
    caplog: pytest.LogCaptureFixture,
):
    author = await make_user("author")
    fan = await make_user("fan")
    post_id, root, reply = await _seed_thread(db_session, author.id, fan.id)
    await db_session.execute(
        update(Post).where(Post.id == post_id).values(like_count=7, comment_count=1)
    )
    await db_session.execute(
        update(Comment).where(Comment.id == root).values(reply_count=0)
    )
    await db_session.execute(
        update(Comment).where(Comment.id == reply).values(like_count=-2)
    )
    await db_session.commit()

    with caplog.at_level(logging.WARNING, logger="services.integrity"):
        drift = await find_counter_drift(db_session)

    assert "Counter drift detected" in caplog.text
    found = {(item.kind, item.row_id): (item.stored, item.actual) for item in drift}
    assert found == {
        (CounterKind.POST_LIKES, post_id): (7, 1),
        (CounterKind.POST_COMMENTS, post_id): (1, 3),
        (CounterKind.COMMENT_LIKES, reply): (-2, 1),
        (CounterKind.COMMENT_REPLIES, root): (0, 1),
    }

    assert await repair_counter_drift(db_session, drift) == 4
    assert await find_counter_drift(db_session) == []
    async with session_maker() as session:
        post = await session.get(Post, post_id)
        assert post is not None
        assert (post.like_count, post.comment_count) == (1, 3)


@pytest.mark.asyncio
async def test_drift_audit_can_be_scoped_to_posts(db_session: AsyncSession, make_user):
    author = await make_user("author")
    store = PostStore(db_session)
    clean_post = await store.create(author.id, "clean")
    broken_post = await store.create(author.id, "broken")
    await db_session.execute(
        update(Post).where(Post.id == broken_post).values(comment_count=5)
    )
    await db_session.commit()

    assert await find_counter_drift(db_session, post_ids=[clean_post]) == []
    scoped = await find_counter_drift(db_session, post_ids=[broken_post])
    assert [(item.kind, item.row_id) for item in scoped] == [
        (CounterKind.POST_COMMENTS, broken_post)
    ]
