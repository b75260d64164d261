"""Typed failures raised by the content store.

Each error carries a short ``code`` that an outer transport layer can map to
its own status codes. Everything except ``StoreFailure`` is a terminal
business outcome and leaves rows and counters untouched.
"""

from __future__ import annotations


class ContentError(Exception):
    """Base class for all content store failures."""

    code = "content_error"

    def __init__(self, message: str | None = None) -> None:
        super().__init__(message or self.default_message())
        self.message = str(self.args[0])

    def default_message(self) -> str:
        return "Content operation failed"


class NotFoundError(ContentError):
    code = "not_found"

    def __init__(self, target_id: int | None = None, message: str | None = None) -> None:
        self.target_id = target_id
        super().__init__(message)

    def default_message(self) -> str:
        return "Resource not found"


class PostNotFoundError(NotFoundError):
    code = "post_not_found"

    def default_message(self) -> str:
        return "Post not found"


class CommentNotFoundError(NotFoundError):
    code = "comment_not_found"

    def default_message(self) -> str:
        return "Comment not found"


class ParentCommentNotFoundError(NotFoundError):
    code = "parent_comment_not_found"

    def default_message(self) -> str:
        return "Parent comment not found"


class LikeStateError(ContentError):
    """The ledger already reflects the opposite of the requested change."""

    code = "like_state"

    def __init__(self, target_id: int, user_id: str, message: str | None = None) -> None:
        self.target_id = target_id
        self.user_id = user_id
        super().__init__(message)


class AlreadyLikedError(LikeStateError):
    code = "already_liked"

    def default_message(self) -> str:
        return "Target already liked by user"


class NotLikedError(LikeStateError):
    code = "not_liked"

    def default_message(self) -> str:
        return "Target not liked by user"


class MaxNestingExceededError(ContentError):
    code = "max_nesting_exceeded"

    def __init__(self, max_level: int, message: str | None = None) -> None:
        self.max_level = max_level
        super().__init__(message)

    def default_message(self) -> str:
        return f"Maximum comment nesting level ({self.max_level}) reached"


class TooManyImagesError(ContentError):
    code = "too_many_images"

    def __init__(self, max_images: int, message: str | None = None) -> None:
        self.max_images = max_images
        super().__init__(message)

    def default_message(self) -> str:
        return f"Maximum of {self.max_images} images allowed"


class StoreFailure(ContentError):
    """Opaque backing-store failure; the transaction was rolled back."""

    code = "store_failure"

    def default_message(self) -> str:
        return "Backing store failure"


__all__ = [
    "ContentError",
    "NotFoundError",
    "PostNotFoundError",
    "CommentNotFoundError",
    "ParentCommentNotFoundError",
    "LikeStateError",
    "AlreadyLikedError",
    "NotLikedError",
    "MaxNestingExceededError",
    "TooManyImagesError",
    "StoreFailure",
]
