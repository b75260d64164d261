"""Hydrated read models returned by the stores."""

from __future__ import annotations

from collections.abc import Sequence
from datetime import datetime
from typing import Generic, TypeVar

from pydantic import BaseModel, ConfigDict, Field

from models import Comment, Post, PostImage, User

ItemT = TypeVar("ItemT")


class AuthorInfo(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    username: str
    nickname: str | None = None
    avatar_key: str | None = None

    @classmethod
    def from_user(cls, user: User) -> "AuthorInfo":
        return cls(
            id=user.id,
            username=user.username,
            nickname=user.nickname,
            avatar_key=user.avatar_key,
        )


class PostImageView(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    path: str
    display_order: int

    @classmethod
    def from_image(cls, image: PostImage) -> "PostImageView":
        if image.id is None:
            raise ValueError("Post image record missing identifier")
        return cls(id=image.id, path=image.path, display_order=image.display_order)


class PostView(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    author_id: str
    content: str
    view_count: int = 0
    like_count: int = 0
    comment_count: int = 0
    created_at: datetime
    updated_at: datetime
    images: list[PostImageView] = Field(default_factory=list)
    liked: bool = False
    author: AuthorInfo | None = None

    @classmethod
    def from_post(
        cls,
        post: Post,
        *,
        images: Sequence[PostImage] = (),
        liked: bool = False,
        author: AuthorInfo | None = None,
    ) -> "PostView":
        if post.id is None:
            raise ValueError("Post record missing identifier")
        return cls(
            id=post.id,
            author_id=post.author_id,
            content=post.content,
            view_count=post.view_count,
            like_count=post.like_count,
            comment_count=post.comment_count,
            created_at=post.created_at,
            updated_at=post.updated_at,
            images=[PostImageView.from_image(image) for image in images],
            liked=liked,
            author=author,
        )


class CommentView(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    post_id: int
    author_id: str
    parent_id: int | None = None
    content: str
    like_count: int = 0
    reply_count: int = 0
    level: int = 0
    created_at: datetime
    updated_at: datetime
    liked: bool = False
    author: AuthorInfo | None = None
    replies: list["CommentView"] = Field(default_factory=list)

    @classmethod
    def from_comment(
        cls,
        comment: Comment,
        *,
        liked: bool = False,
        author: AuthorInfo | None = None,
        replies: list["CommentView"] | None = None,
    ) -> "CommentView":
        if comment.id is None:
            raise ValueError("Comment record missing identifier")
        return cls(
            id=comment.id,
            post_id=comment.post_id,
            author_id=comment.author_id,
            parent_id=comment.parent_id,
            content=comment.content,
            like_count=comment.like_count,
            reply_count=comment.reply_count,
            level=comment.level,
            created_at=comment.created_at,
            updated_at=comment.updated_at,
            liked=liked,
            author=author,
            replies=replies or [],
        )


CommentView.model_rebuild()


class Page(BaseModel, Generic[ItemT]):
    items: list[ItemT]
    total: int
    page: int
    page_size: int

    @property
    def has_more(self) -> bool:
        return self.page * self.page_size < self.total
