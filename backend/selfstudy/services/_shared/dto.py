"""Pagination value objects shared by listing operations."""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from typing import Any


@dataclass(frozen=True, slots=True)
class PaginationIn:
    """
    Requested window over a listing.

    :ivar page: 1-based page number.
    :ivar limit: Rows per page.
    :ivar sort: Sort tokens; a leading ``-`` means descending (``"-created_at"``).
    """

    page: int = 1
    limit: int = 20
    sort: Iterable[str] | None = None


@dataclass(frozen=True, slots=True)
class PageMeta:
    """Totals and neighbour flags returned alongside a page of rows."""

    page: int
    limit: int
    total: int
    has_prev: bool
    has_next: bool

    @classmethod
    def of(cls, page: Any) -> PageMeta:
        """Copy the metadata of a repository :class:`~selfstudy.repositories.base.Page`."""
        return cls(
            page=page.page,
            limit=page.limit,
            total=page.total,
            has_prev=page.has_prev,
            has_next=page.has_next,
        )
