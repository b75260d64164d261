"""Tests for the post store."""

import logging
from typing import Any, cast

import pytest
from sqlalchemy import func, select
from sqlalchemy.exc import OperationalError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.sql import ColumnElement

from core.errors import PostNotFoundError, StoreFailure, TooManyImagesError
from models import Comment, CommentLike, Post, PostImage, PostLike
from services import CommentStore, PostStore
from services import counters


def _eq(column: Any, value: Any) -> ColumnElement[bool]:
    return cast(ColumnElement[bool], column == value)


async def _count(session: AsyncSession, model: Any, *criteria: ColumnElement[bool]) -> int:
    result = await session.execute(select(func.count()).select_from(model).where(*criteria))
    return int(result.scalar_one())


async def _load_post(session_maker, post_id: int) -> Post | None:
    async with session_maker() as session:
        return await session.get(Post, post_id)


@pytest.mark.asyncio
async def test_create_and_get_post(db_session: AsyncSession, session_maker, make_user):
    author = await make_user("author")
    viewer = await make_user("viewer")
    store = PostStore(db_session)

    post_id = await store.create(author.id, "First shot!", ["posts/a.jpg", "posts/b.jpg", "posts/c.jpg"])

    post = await _load_post(session_maker, post_id)
    assert post is not None
    assert post.content == "First shot!"
    assert (post.view_count, post.like_count, post.comment_count) == (0, 0, 0)

    view = await store.get_by_id(post_id, viewer.id)
    assert view.id == post_id
    assert [image.path for image in view.images] == ["posts/a.jpg", "posts/b.jpg", "posts/c.jpg"]
    assert [image.display_order for image in view.images] == [0, 1, 2]
    assert view.liked is False
    assert view.author is not None
    assert view.author.username == author.username
    assert view.author.nickname == "Author"


@pytest.mark.asyncio
async def test_create_post_without_images(db_session: AsyncSession, make_user):
    author = await make_user("author")
    store = PostStore(db_session)

    post_id = await store.create(author.id, "text only")
    view = await store.get_by_id(post_id, author.id)

    assert view.images == []


@pytest.mark.asyncio
async def test_create_post_rejects_too_many_images(db_session: AsyncSession, make_user):
    author = await make_user("author")
    store = PostStore(db_session, max_images=2)

    with pytest.raises(TooManyImagesError) as exc_info:
        await store.create(author.id, "too many", ["1.jpg", "2.jpg", "3.jpg"])

    assert exc_info.value.code == "too_many_images"
    assert await _count(db_session, Post) == 0
    assert await _count(db_session, PostImage) == 0


@pytest.mark.asyncio
async def test_create_post_is_atomic_when_image_insert_fails(
    db_session: AsyncSession,
    make_user,
    monkeypatch: pytest.MonkeyPatch,
):
    author = await make_user("author")
    store = PostStore(db_session)
    original_add_all = db_session.add_all

    def failing_add_all(instances):
        original_add_all(instances)
        raise OperationalError("INSERT INTO post_images", {}, Exception("disk I/O error"))

    monkeypatch.setattr(db_session, "add_all", failing_add_all)

    with pytest.raises(StoreFailure):
        await store.create(author.id, "half written", ["a.jpg"])

    monkeypatch.undo()
    assert await _count(db_session, Post) == 0
    assert await _count(db_session, PostImage) == 0


@pytest.mark.asyncio
async def test_get_post_missing_raises_not_found(db_session: AsyncSession):
    store = PostStore(db_session)

    with pytest.raises(PostNotFoundError) as exc_info:
        await store.get_by_id(4242, "viewer")

    assert exc_info.value.target_id == 4242


@pytest.mark.asyncio
async def test_get_post_increments_view_count(db_session: AsyncSession, session_maker, make_user):
    author = await make_user("author")
    store = PostStore(db_session)
    post_id = await store.create(author.id, "watch me")

    first = await store.get_by_id(post_id, author.id)
    second = await store.get_by_id(post_id, author.id)

    assert first.view_count == 0
    assert second.view_count == 1
    post = await _load_post(session_maker, post_id)
    assert post is not None
    assert post.view_count == 2


@pytest.mark.asyncio
async def test_view_count_failure_does_not_fail_read(
    db_session: AsyncSession,
    session_maker,
    make_user,
    monkeypatch: pytest.MonkeyPatch,
    caplog: pytest.LogCaptureFixture,
):
    author = await make_user("author")
    store = PostStore(db_session)
    post_id = await store.create(author.id, "busy")

    async def failing_increment(session, post_id, delta=1):
        raise OperationalError("UPDATE posts", {}, Exception("database is locked"))

    monkeypatch.setattr(counters, "increment_post_view_count", failing_increment)

    with caplog.at_level(logging.WARNING, logger="services.posts"):
        view = await store.get_by_id(post_id, author.id)

    assert view.id == post_id
    assert "Failed to record post view" in caplog.text
    post = await _load_post(session_maker, post_id)
    assert post is not None
    assert post.view_count == 0


@pytest.mark.asyncio
async def test_list_posts_orders_newest_first_and_paginates(db_session: AsyncSession, make_user):
    author = await make_user("author")
    store = PostStore(db_session)
    post_ids = [await store.create(author.id, f"post {index}") for index in range(5)]

    first_page = await store.list(page=1, page_size=2, viewer_id=author.id)
    second_page = await store.list(page=2, page_size=2, viewer_id=author.id)
    last_page = await store.list(page=3, page_size=2, viewer_id=author.id)

    assert first_page.total == 5
    assert [item.id for item in first_page.items] == [post_ids[4], post_ids[3]]
    assert [item.id for item in second_page.items] == [post_ids[2], post_ids[1]]
    assert [item.id for item in last_page.items] == [post_ids[0]]
    assert first_page.has_more is True
    assert last_page.has_more is False


@pytest.mark.asyncio
async def test_list_posts_filters_by_author_and_marks_likes(db_session: AsyncSession, make_user):
    alice = await make_user("alice")
    bob = await make_user("bob")
    store = PostStore(db_session)
    alice_post = await store.create(alice.id, "from alice", ["a.jpg"])
    await store.create(bob.id, "from bob")
    await store.like(alice_post, bob.id)

    page = await store.list(page=1, page_size=10, viewer_id=bob.id, author_id=alice.id)

    assert page.total == 1
    assert [item.id for item in page.items] == [alice_post]
    item = page.items[0]
    assert item.liked is True
    assert item.like_count == 1
    assert [image.path for image in item.images] == ["a.jpg"]
    assert item.author is not None and item.author.id == alice.id


@pytest.mark.asyncio
async def test_list_posts_normalizes_page_arguments(db_session: AsyncSession, make_user):
    author = await make_user("author")
    store = PostStore(db_session)
    for index in range(3):
        await store.create(author.id, f"post {index}")

    page = await store.list(page=0, page_size=0, viewer_id=None)
    capped = await store.list(page=1, page_size=10_000, viewer_id=None)

    assert (page.page, page.page_size) == (1, 10)
    assert len(page.items) == 3
    assert capped.page_size == 50


@pytest.mark.asyncio
async def test_list_posts_tolerates_missing_author_profile(db_session: AsyncSession):
    store = PostStore(db_session)
    post_id = await store.create("ghost-author", "orphaned author")

    page = await store.list(page=1, page_size=10, viewer_id=None)

    assert [item.id for item in page.items] == [post_id]
    assert page.items[0].author is None


@pytest.mark.asyncio
async def test_update_post_replaces_content(db_session: AsyncSession, session_maker, make_user):
    author = await make_user("author")
    store = PostStore(db_session)
    post_id = await store.create(author.id, "draft")
    before = await _load_post(session_maker, post_id)
    assert before is not None

    await store.update(post_id, "final")

    after = await _load_post(session_maker, post_id)
    assert after is not None
    assert after.content == "final"
    assert after.updated_at >= before.updated_at
    assert after.created_at == before.created_at


@pytest.mark.asyncio
async def test_update_missing_post_raises_not_found(db_session: AsyncSession):
    with pytest.raises(PostNotFoundError):
        await PostStore(db_session).update(999, "nothing")


@pytest.mark.asyncio
async def test_delete_post_cascades_everything(db_session: AsyncSession, make_user):
    author = await make_user("author")
    fan = await make_user("fan")
    posts = PostStore(db_session)
    comments = CommentStore(db_session)
    post_id = await posts.create(author.id, "doomed", ["x.jpg", "y.jpg"])
    other_post_id = await posts.create(author.id, "survivor")
    await posts.like(post_id, fan.id)
    root = await comments.create(post_id, fan.id, "root")
    reply = await comments.create(post_id, author.id, "reply", parent_id=root)
    await comments.like(reply, fan.id)
    survivor_comment = await comments.create(other_post_id, fan.id, "elsewhere")
    await comments.like(survivor_comment, author.id)

    removed_paths = await posts.delete(post_id)

    assert removed_paths == ["x.jpg", "y.jpg"]
    assert await _count(db_session, Post, _eq(Post.id, post_id)) == 0
    assert await _count(db_session, PostImage, _eq(PostImage.post_id, post_id)) == 0
    assert await _count(db_session, PostLike, _eq(PostLike.post_id, post_id)) == 0
    assert await _count(db_session, Comment, _eq(Comment.post_id, post_id)) == 0
    assert await _count(db_session, CommentLike, _eq(CommentLike.comment_id, reply)) == 0
    assert await _count(db_session, Comment, _eq(Comment.post_id, other_post_id)) == 1
    assert await _count(db_session, CommentLike, _eq(CommentLike.comment_id, survivor_comment)) == 1


@pytest.mark.asyncio
async def test_delete_post_rolls_back_when_comment_cascade_fails(
    db_session: AsyncSession,
    make_user,
    monkeypatch: pytest.MonkeyPatch,
):
    author = await make_user("author")
    posts = PostStore(db_session)
    comments = CommentStore(db_session)
    post_id = await posts.create(author.id, "keep me", ["keep.jpg"])
    await posts.like(post_id, author.id)
    await comments.create(post_id, author.id, "still here")

    async def failing_delete_all(post_id: int) -> int:
        raise OperationalError("DELETE FROM comments", {}, Exception("deadlock detected"))

    monkeypatch.setattr(posts.comments, "delete_all_for_post", failing_delete_all)

    with pytest.raises(StoreFailure):
        await posts.delete(post_id)

    assert await _count(db_session, Post, _eq(Post.id, post_id)) == 1
    assert await _count(db_session, PostImage, _eq(PostImage.post_id, post_id)) == 1
    assert await _count(db_session, PostLike, _eq(PostLike.post_id, post_id)) == 1
    assert await _count(db_session, Comment, _eq(Comment.post_id, post_id)) == 1


@pytest.mark.asyncio
async def test_delete_missing_post_raises_not_found(db_session: AsyncSession):
    with pytest.raises(PostNotFoundError):
        await PostStore(db_session).delete(31337)
