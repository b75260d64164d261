"""Threaded comment model."""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import Column, DateTime, ForeignKey, Index, Integer, String, Text, func, text
from sqlmodel import Field, SQLModel

from .timestamps import utc_now


class Comment(SQLModel, table=True):
    """Comment on a post, optionally replying to another comment.

    ``level`` is fixed at creation: 0 for top-level comments, otherwise the
    parent's level plus one.
    """

    __tablename__ = "comments"
    __table_args__ = (
        Index("ix_comments_post_level_created_at", "post_id", "level", "created_at"),
        Index("ix_comments_parent_created_at", "parent_id", "created_at"),
        Index("ix_comments_author_id", "author_id"),
    )

    id: int | None = Field(default=None, sa_column=Column(Integer, primary_key=True, autoincrement=True))
    post_id: int = Field(
        sa_column=Column(Integer, ForeignKey("posts.id"), nullable=False)
    )
    author_id: str = Field(sa_column=Column(String(36), nullable=False))
    parent_id: int | None = Field(
        default=None,
        sa_column=Column(Integer, ForeignKey("comments.id"), nullable=True),
    )
    content: str = Field(sa_column=Column(Text, nullable=False))
    like_count: int = Field(
        default=0,
        sa_column=Column(Integer, nullable=False, server_default=text("0")),
    )
    reply_count: int = Field(
        default=0,
        sa_column=Column(Integer, nullable=False, server_default=text("0")),
    )
    level: int = Field(
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
