"""Page-number pagination policy shared by every listing."""

from __future__ import annotations

from typing import NamedTuple

from core.errors import ValidationError

MAX_PAGE = 10_000

COMMENTS_PAGE_SIZE = 5
POSTS_PAGE_SIZE = 5
NOTIFICATIONS_PAGE_SIZE = 5
FOLLOWS_PAGE_SIZE = 20
LIKES_PAGE_SIZE = 20
MESSAGES_PAGE_SIZE = 20


class PageCursor(NamedTuple):
    skip: int
    limit: int


def page_cursor(page: int, page_size: int) -> PageCursor:
    """Translate a 1-indexed page number into an offset/limit pair."""
    if page < 1:
        raise ValidationError("Page must be a positive integer")
    if page > MAX_PAGE:
        raise ValidationError(f"Page cannot exceed {MAX_PAGE}")
    if page_size < 1:
        raise ValueError("page_size must be positive")
    return PageCursor(skip=page_size * (page - 1), limit=page_size)


def is_last_page(returned_count: int, page_size: int) -> bool:
    return returned_count < page_size
