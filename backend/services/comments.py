"""Comment store: reply trees, per-comment counters and cascading deletes."""

from __future__ import annotations

import logging
from collections import defaultdict
from collections.abc import Iterable, Sequence
from typing import Any, cast

from sqlalchemy import delete, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from core.config import COMMENT_LEVEL_LIMIT, settings
from core.errors import (
    CommentNotFoundError,
    MaxNestingExceededError,
    ParentCommentNotFoundError,
    PostNotFoundError,
)
from db.transactions import read_scope, transaction
from models import Comment, Post
from models.timestamps import utc_now

from . import counters
from .authors import load_authors
from .common import asc, desc, eq, in_, rowcount
from .likes import COMMENT_LIKES
from .pagination import normalize_page, page_offset
from .schemas import AuthorInfo, CommentView, Page

logger = logging.getLogger(__name__)

ChildrenByParent = dict[int, list[Comment]]


class CommentStore:
    """Threaded comments bound to one session.

    Every mutation runs as a single transaction: the comment rows, the like
    ledger rows and the reply/comment counters change together or not at all.
    """

    def __init__(self, session: AsyncSession, *, max_level: int | None = None) -> None:
        self.session = session
        self.max_level = settings.max_comment_level if max_level is None else max_level
        if not 0 <= self.max_level <= COMMENT_LEVEL_LIMIT:
            raise ValueError(f"max_level must be between 0 and {COMMENT_LEVEL_LIMIT}")

    async def create(
        self,
        post_id: int,
        author_id: str,
        content: str,
        parent_id: int | None = None,
    ) -> int:
        """Insert a comment (or reply) and bump the affected counters."""
        async with transaction(self.session, operation="create_comment"):
            if not await self._post_exists(post_id):
                raise PostNotFoundError(post_id)

            level = 0
            if parent_id is not None:
                parent = await self._get(parent_id)
                if parent is None or parent.post_id != post_id:
                    raise ParentCommentNotFoundError(parent_id)
                level = parent.level + 1
                if level > self.max_level:
                    raise MaxNestingExceededError(self.max_level)
                await counters.increment_comment_reply_count(self.session, parent_id, 1)

            now = utc_now()
            comment = Comment(
                post_id=post_id,
                author_id=author_id,
                parent_id=parent_id,
                content=content,
                level=level,
                created_at=now,
                updated_at=now,
            )
            self.session.add(comment)
            await self.session.flush()
            if comment.id is None:
                raise RuntimeError("Comment insert did not return an identifier")
            comment_id = comment.id

            await counters.increment_post_comment_count(self.session, post_id, 1)
        return comment_id

    async def get_by_id(self, comment_id: int, viewer_id: str | None) -> CommentView:
        """Load one comment; top-level comments come with their whole thread."""
        async with read_scope(self.session, operation="get_comment"):
            comment = await self._get(comment_id)
            if comment is None:
                raise CommentNotFoundError(comment_id)

            children: ChildrenByParent = {}
            if comment.level == 0:
                children = await self._load_descendants([comment_id])
            views = await self._hydrate([comment], children, viewer_id)
            return views[0]

    async def get_replies(self, comment_id: int, viewer_id: str | None) -> list[CommentView]:
        """Return the hydrated reply subtree below any comment."""
        async with read_scope(self.session, operation="get_comment_replies"):
            comment = await self._get(comment_id)
            if comment is None:
                raise CommentNotFoundError(comment_id)

            children = await self._load_descendants([comment_id])
            views = await self._hydrate([comment], children, viewer_id)
            return views[0].replies

    async def list_comments(
        self,
        post_id: int,
        page: int,
        page_size: int,
        viewer_id: str | None,
    ) -> Page[CommentView]:
        """Paginate top-level comments, newest first, each with its full thread.

        Replies below the top level are never paginated, so one page costs
        O(size of the returned threads).
        """
        page, page_size = normalize_page(page, page_size)
        top_level = (eq(Comment.post_id, post_id), eq(Comment.level, 0))

        async with read_scope(self.session, operation="list_comments"):
            count_column = cast(Any, func.count(cast(Any, Comment.id)))
            total_result = await self.session.execute(
                select(count_column).where(*top_level)
            )
            total = int(total_result.scalar_one() or 0)

            result = await self.session.execute(
                select(cast(Any, Comment))
                .where(*top_level)
                .order_by(desc(Comment.created_at), desc(Comment.id))
                .offset(page_offset(page, page_size))
                .limit(page_size)
                .execution_options(populate_existing=True)
            )
            roots = list(result.scalars().all())
            children = await self._load_descendants(
                [root.id for root in roots if root.id is not None]
            )
            items = await self._hydrate(roots, children, viewer_id)

        return Page[CommentView](items=items, total=total, page=page, page_size=page_size)

    async def delete(self, comment_id: int) -> int:
        """Delete a comment with its whole subtree and their likes.

        Returns the number of comment rows removed.
        """
        async with transaction(self.session, operation="delete_comment"):
            comment = await self._get(comment_id)
            if comment is None:
                raise CommentNotFoundError(comment_id)
            post_id = comment.post_id
            parent_id = comment.parent_id

            levels = await self._descendant_id_levels([comment_id])
            descendant_ids = [child_id for level_ids in levels for child_id in level_ids]

            await COMMENT_LIKES.delete_for_targets(self.session, [comment_id, *descendant_ids])
            removed = 0
            for level_ids in reversed(levels):
                result = await self.session.execute(
                    delete(Comment).where(in_(Comment.id, level_ids))
                )
                removed += rowcount(result)
            result = await self.session.execute(delete(Comment).where(eq(Comment.id, comment_id)))
            # A concurrent delete already removed the row and applied the decrements.
            if rowcount(result) == 0:
                raise CommentNotFoundError(comment_id)
            removed += 1

            if parent_id is not None:
                await counters.increment_comment_reply_count(self.session, parent_id, -1)
            await counters.increment_post_comment_count(self.session, post_id, -removed)

        logger.info(
            "Deleted comment thread",
            extra={"comment_id": comment_id, "post_id": post_id, "removed_comments": removed},
        )
        return removed

    async def delete_all_for_post(self, post_id: int) -> int:
        """Remove every comment of a post and their likes.

        Runs on the caller's open transaction and leaves
        ``post.comment_count`` alone; only the post delete path uses it.
        """
        comment_ids = select(cast(Any, Comment.id)).where(eq(Comment.post_id, post_id))
        await COMMENT_LIKES.delete_for_target_query(self.session, comment_ids)
        result = await self.session.execute(
            delete(Comment).where(eq(Comment.post_id, post_id))
        )
        return rowcount(result)

    async def like(self, comment_id: int, user_id: str) -> None:
        async with transaction(self.session, operation="like_comment"):
            if await self._get(comment_id) is None:
                raise CommentNotFoundError(comment_id)
            await COMMENT_LIKES.add(self.session, comment_id, user_id)
            if not await counters.increment_comment_like_count(self.session, comment_id, 1):
                raise CommentNotFoundError(comment_id)

    async def unlike(self, comment_id: int, user_id: str) -> None:
        async with transaction(self.session, operation="unlike_comment"):
            if await self._get(comment_id) is None:
                raise CommentNotFoundError(comment_id)
            await COMMENT_LIKES.remove(self.session, comment_id, user_id)
            if not await counters.increment_comment_like_count(self.session, comment_id, -1):
                raise CommentNotFoundError(comment_id)

    async def _get(self, comment_id: int) -> Comment | None:
        result = await self.session.execute(
            select(cast(Any, Comment))
            .where(eq(Comment.id, comment_id))
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def _post_exists(self, post_id: int) -> bool:
        result = await self.session.execute(
            select(cast(Any, Post.id)).where(eq(Post.id, post_id)).limit(1)
        )
        return result.scalar_one_or_none() is not None

    async def _load_descendants(self, root_ids: Sequence[int]) -> ChildrenByParent:
        """Fetch every descendant of ``root_ids`` one tree level per query.

        Children are grouped by parent and kept in creation order.
        """
        children: ChildrenByParent = defaultdict(list)
        frontier = list(root_ids)
        while frontier:
            result = await self.session.execute(
                select(cast(Any, Comment))
                .where(in_(Comment.parent_id, frontier))
                .order_by(asc(Comment.created_at), asc(Comment.id))
                .execution_options(populate_existing=True)
            )
            level = list(result.scalars().all())
            for child in level:
                if child.parent_id is not None:
                    children[child.parent_id].append(child)
            frontier = [child.id for child in level if child.id is not None]
        return children

    async def _descendant_id_levels(self, root_ids: Sequence[int]) -> list[list[int]]:
        """Return descendant ids grouped by depth below ``root_ids``."""
        levels: list[list[int]] = []
        frontier = list(root_ids)
        while frontier:
            result = await self.session.execute(
                select(cast(Any, Comment.id)).where(in_(Comment.parent_id, frontier))
            )
            frontier = [int(row[0]) for row in result.all()]
            if frontier:
                levels.append(frontier)
        return levels

    async def _hydrate(
        self,
        roots: Sequence[Comment],
        children: ChildrenByParent,
        viewer_id: str | None,
    ) -> list[CommentView]:
        everything = list(_walk(roots, children))
        comment_ids = [comment.id for comment in everything if comment.id is not None]
        liked_ids = await COMMENT_LIKES.liked_target_ids(self.session, comment_ids, viewer_id)
        authors = await load_authors(self.session, (comment.author_id for comment in everything))
        return [_build_view(root, children, liked_ids, authors) for root in roots]


def _walk(roots: Iterable[Comment], children: ChildrenByParent) -> Iterable[Comment]:
    stack = list(roots)
    while stack:
        comment = stack.pop()
        yield comment
        if comment.id is not None:
            stack.extend(children.get(comment.id, ()))


def _build_view(
    comment: Comment,
    children: ChildrenByParent,
    liked_ids: set[int],
    authors: dict[str, AuthorInfo],
) -> CommentView:
    # Depth is bounded by the nesting cap, so plain recursion is fine here.
    replies = [
        _build_view(child, children, liked_ids, authors)
        for child in children.get(cast(int, comment.id), ())
    ]
    return CommentView.from_comment(
        comment,
        liked=comment.id in liked_ids,
        author=authors.get(comment.author_id),
        replies=replies,
    )
