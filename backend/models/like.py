"""Like ledger models for posts and comments."""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import Column, DateTime, ForeignKey, Index, Integer, String, UniqueConstraint, func
from sqlmodel import Field, SQLModel

from .timestamps import utc_now


class PostLike(SQLModel, table=True):
    """Tracks which users liked which posts."""

    __tablename__ = "post_likes"
    __table_args__ = (
        UniqueConstraint("post_id", "user_id", name="uq_post_likes_post_user"),
        Index("ix_post_likes_user_id", "user_id"),
    )

    id: int | None = Field(default=None, sa_column=Column(Integer, primary_key=True, autoincrement=True))
    post_id: int = Field(
        sa_column=Column(Integer, ForeignKey("posts.id"), nullable=False)
    )
    user_id: str = Field(sa_column=Column(String(36), nullable=False))
    created_at: datetime = Field(
        default_factory=utc_now,
        sa_column=Column(
            DateTime(timezone=True), server_default=func.now(), nullable=False
        ),
    )


class CommentLike(SQLModel, table=True):
    """Tracks which users liked which comments."""

    __tablename__ = "comment_likes"
    __table_args__ = (
        UniqueConstraint("comment_id", "user_id", name="uq_comment_likes_comment_user"),
        Index("ix_comment_likes_user_id", "user_id"),
    )

    id: int | None = Field(default=None, sa_column=Column(Integer, primary_key=True, autoincrement=True))
    comment_id: int = Field(
        sa_column=Column(Integer, ForeignKey("comments.id"), nullable=False)
    )
    user_id: str = Field(sa_column=Column(String(36), nullable=False))
    created_at: datetime = Field(
        default_factory=utc_now,
        sa_column=Column(
            DateTime(timezone=True), server_default=func.now(), nullable=False
        ),
    )
