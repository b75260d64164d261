"""Content services: post and comment stores, like ledgers and audits."""

from .comments import CommentStore
from .counters import CounterKind
from .integrity import CounterDrift, find_counter_drift, repair_counter_drift
from .likes import COMMENT_LIKES, POST_LIKES, LikeLedger
from .pagination import normalize_page
from .posts import PostStore
from .schemas import AuthorInfo, CommentView, Page, PostImageView, PostView

__all__ = [
    "PostStore",
    "CommentStore",
    "LikeLedger",
    "POST_LIKES",
    "COMMENT_LIKES",
    "CounterKind",
    "CounterDrift",
    "find_counter_drift",
    "repair_counter_drift",
    "normalize_page",
    "AuthorInfo",
    "PostImageView",
    "PostView",
    "CommentView",
    "Page",
]
