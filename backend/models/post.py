"""Post and post image models."""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import Column, DateTime, ForeignKey, Index, Integer, String, Text, func, text
from sqlmodel import Field, SQLModel

from .timestamps import utc_now


class Post(SQLModel, table=True):
    """A user post carrying denormalized engagement counters."""

    __tablename__ = "posts"
    __table_args__ = (
        Index("ix_posts_author_id", "author_id"),
        Index("ix_posts_created_at_id", "created_at", "id"),
    )

    id: int | None = Field(default=None, sa_column=Column(Integer, primary_key=True, autoincrement=True))
    author_id: str = Field(sa_column=Column(String(36), nullable=False))
    content: str = Field(sa_column=Column(Text, nullable=False))
    view_count: int = Field(
        default=0,
        sa_column=Column(Integer, nullable=False, server_default=text("0")),
    )
    like_count: int = Field(
        default=0,
        sa_column=Column(Integer, nullable=False, server_default=text("0")),
    )
    comment_count: int = Field(
        default=0,
        sa_column=Column(Integer, nullable=False, server_default=text("0")),
    )
    created_at: datetime = Field(
        default_factory=utc_now,
        sa_column=Column(
            DateTime(timezone=True), server_default=func.now(), nullable=False
        ),
    )
    updated_at: datetime = Field(
        default_factory=utc_now,
        sa_column=Column(
            DateTime(timezone=True), server_default=func.now(), nullable=False
        ),
    )


class PostImage(SQLModel, table=True):
    """Image path attached to a post, kept in upload order."""

    __tablename__ = "post_images"
    __table_args__ = (
        Index("ix_post_images_post_display_order", "post_id", "display_order"),
    )

    id: int | None = Field(default=None, sa_column=Column(Integer, primary_key=True, autoincrement=True))
    post_id: int = Field(
        sa_column=Column(Integer, ForeignKey("posts.id"), nullable=False)
    )
    path: str = Field(sa_column=Column(String(255), nullable=False))
    display_order: int = Field(
        default=0,
        sa_column=Column(Integer, nullable=False, server_default=text("0")),
    )
    created_at: datetime = Field(
        default_factory=utc_now,
        sa_column=Column(
            DateTime(timezone=True), server_default=func.now(), nullable=False
        ),
    )
