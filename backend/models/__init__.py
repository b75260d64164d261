"""SQLModel models package."""

from .comment import Comment
from .like import CommentLike, PostLike
from .post import Post, PostImage
from .user import User

__all__ = [
    "User",
    "Post",
    "PostImage",
    "Comment",
    "PostLike",
    "CommentLike",
]
