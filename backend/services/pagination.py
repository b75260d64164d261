"""Page/size normalization shared by the list operations."""

from __future__ import annotations

from core.config import settings


def normalize_page(page: int, page_size: int) -> tuple[int, int]:
    """Clamp a 1-based page number and a page size to the configured bounds."""
    if page < 1:
        page = 1
    if page_size < 1:
        page_size = settings.default_page_size
    if page_size > settings.max_page_size:
        page_size = settings.max_page_size
    return page, page_size


def page_offset(page: int, page_size: int) -> int:
    return (page - 1) * page_size
