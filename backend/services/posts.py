"""Post store: posts, their images and per-post counters."""

from __future__ import annotations

import logging
from collections import defaultdict
from collections.abc import Sequence
from typing import Any, cast

from sqlalchemy import delete, func, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from core.config import settings
from core.errors import PostNotFoundError, TooManyImagesError
from db.transactions import read_scope, transaction
from models import Post, PostImage
from models.timestamps import utc_now

from . import counters
from .authors import load_authors
from .comments import CommentStore
from .common import asc, desc, eq, in_, rowcount
from .likes import POST_LIKES
from .pagination import normalize_page, page_offset
from .schemas import Page, PostView

logger = logging.getLogger(__name__)


class PostStore:
    """Posts bound to one session; comment cascades go through ``CommentStore``."""

    def __init__(
        self,
        session: AsyncSession,
        *,
        comments: CommentStore | None = None,
        max_images: int | None = None,
    ) -> None:
        self.session = session
        self.comments = comments or CommentStore(session)
        self.max_images = settings.max_post_images if max_images is None else max_images

    async def create(
        self,
        author_id: str,
        content: str,
        image_paths: Sequence[str] = (),
    ) -> int:
        """Insert a post and its images atomically; returns the new post id."""
        if len(image_paths) > self.max_images:
            raise TooManyImagesError(self.max_images)

        async with transaction(self.session, operation="create_post"):
            now = utc_now()
            post = Post(
                author_id=author_id,
                content=content,
                created_at=now,
                updated_at=now,
            )
            self.session.add(post)
            await self.session.flush()
            if post.id is None:
                raise RuntimeError("Post insert did not return an identifier")
            post_id = post.id

            if image_paths:
                self.session.add_all(
                    [
                        PostImage(
                            post_id=post_id,
                            path=path,
                            display_order=index,
                            created_at=now,
                        )
                        for index, path in enumerate(image_paths)
                    ]
                )
                await self.session.flush()
        return post_id

    async def get_by_id(self, post_id: int, viewer_id: str | None) -> PostView:
        """Load a hydrated post and count the view.

        The view counter is bumped after the read in a separate, best-effort
        step; the returned view carries the count as it was read.
        """
        async with read_scope(self.session, operation="get_post"):
            post = await self._get(post_id)
            if post is None:
                raise PostNotFoundError(post_id)
            view = (await self._hydrate([post], viewer_id))[0]

        await self._record_view(post_id)
        return view

    async def list(
        self,
        page: int,
        page_size: int,
        viewer_id: str | None,
        author_id: str | None = None,
    ) -> Page[PostView]:
        """Paginate posts newest first, optionally restricted to one author."""
        page, page_size = normalize_page(page, page_size)
        filters = [eq(Post.author_id, author_id)] if author_id else []

        async with read_scope(self.session, operation="list_posts"):
            count_column = cast(Any, func.count(cast(Any, Post.id)))
            total_result = await self.session.execute(select(count_column).where(*filters))
            total = int(total_result.scalar_one() or 0)

            result = await self.session.execute(
                select(cast(Any, Post))
                .where(*filters)
                .order_by(desc(Post.created_at), desc(Post.id))
                .offset(page_offset(page, page_size))
                .limit(page_size)
                .execution_options(populate_existing=True)
            )
            posts = list(result.scalars().all())
            items = await self._hydrate(posts, viewer_id)

        return Page[PostView](items=items, total=total, page=page, page_size=page_size)

    async def update(self, post_id: int, content: str) -> None:
        """Replace the content of a post. Ownership is checked by the caller."""
        async with transaction(self.session, operation="update_post"):
            result = await self.session.execute(
                update(Post)
                .where(eq(Post.id, post_id))
                .values(content=content, updated_at=utc_now())
            )
            if rowcount(result) == 0:
                raise PostNotFoundError(post_id)

    async def delete(self, post_id: int) -> list[str]:
        """Delete a post with its images, likes and every comment.

        Returns the image paths that were attached so the caller can remove
        the stored files once the rows are gone.
        """
        async with transaction(self.session, operation="delete_post"):
            if await self._get(post_id) is None:
                raise PostNotFoundError(post_id)

            paths_result = await self.session.execute(
                select(cast(Any, PostImage.path))
                .where(eq(PostImage.post_id, post_id))
                .order_by(asc(PostImage.display_order))
            )
            image_paths = [str(row[0]) for row in paths_result.all()]

            await self.session.execute(delete(PostImage).where(eq(PostImage.post_id, post_id)))
            await POST_LIKES.delete_for_targets(self.session, [post_id])
            removed_comments = await self.comments.delete_all_for_post(post_id)
            await self.session.execute(delete(Post).where(eq(Post.id, post_id)))

        logger.info(
            "Deleted post",
            extra={"post_id": post_id, "removed_comments": removed_comments},
        )
        return image_paths

    async def like(self, post_id: int, user_id: str) -> None:
        async with transaction(self.session, operation="like_post"):
            if await self._get(post_id) is None:
                raise PostNotFoundError(post_id)
            await POST_LIKES.add(self.session, post_id, user_id)
            if not await counters.increment_post_like_count(self.session, post_id, 1):
                raise PostNotFoundError(post_id)

    async def unlike(self, post_id: int, user_id: str) -> None:
        async with transaction(self.session, operation="unlike_post"):
            if await self._get(post_id) is None:
                raise PostNotFoundError(post_id)
            await POST_LIKES.remove(self.session, post_id, user_id)
            if not await counters.increment_post_like_count(self.session, post_id, -1):
                raise PostNotFoundError(post_id)

    async def _get(self, post_id: int) -> Post | None:
        result = await self.session.execute(
            select(cast(Any, Post))
            .where(eq(Post.id, post_id))
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def _record_view(self, post_id: int) -> None:
        try:
            await counters.increment_post_view_count(self.session, post_id)
            await self.session.commit()
        except SQLAlchemyError as exc:
            await self.session.rollback()
            logger.warning(
                "Failed to record post view",
                extra={"post_id": post_id},
                exc_info=exc,
            )

    async def _hydrate(self, posts: Sequence[Post], viewer_id: str | None) -> list[PostView]:
        post_ids = [post.id for post in posts if post.id is not None]
        images_by_post: dict[int, list[PostImage]] = defaultdict(list)
        if post_ids:
            images_result = await self.session.execute(
                select(cast(Any, PostImage))
                .where(in_(PostImage.post_id, post_ids))
                .order_by(asc(PostImage.post_id), asc(PostImage.display_order), asc(PostImage.id))
            )
            for image in images_result.scalars().all():
                images_by_post[image.post_id].append(image)

        liked_ids = await POST_LIKES.liked_target_ids(self.session, post_ids, viewer_id)
        authors = await load_authors(self.session, (post.author_id for post in posts))
        return [
            PostView.from_post(
                post,
                images=images_by_post.get(cast(int, post.id), []),
                liked=post.id in liked_ids,
                author=authors.get(post.author_id),
            )
            for post in posts
        ]
