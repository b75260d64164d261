"""Core configuration, logging and error types."""

from .config import Settings, settings
from .errors import (
    AlreadyLikedError,
    CommentNotFoundError,
    ContentError,
    MaxNestingExceededError,
    NotFoundError,
    NotLikedError,
    ParentCommentNotFoundError,
    PostNotFoundError,
    StoreFailure,
    TooManyImagesError,
)
from .logging import configure_logging

__all__ = [
    "Settings",
    "settings",
    "configure_logging",
    "ContentError",
    "NotFoundError",
    "PostNotFoundError",
    "CommentNotFoundError",
    "ParentCommentNotFoundError",
    "AlreadyLikedError",
    "NotLikedError",
    "MaxNestingExceededError",
    "TooManyImagesError",
    "StoreFailure",
]
