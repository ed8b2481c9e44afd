"""Pagination parameter normalization shared by list endpoints."""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Iterable

from ..config import settings
from ..errors import InvalidInput
from ..schemas import PageMeta, PaginationParams

DEFAULT_SORT_BY = "created_at"
DEFAULT_SORT_ORDER = "desc"


@dataclass(frozen=True)
class Pagination:
    page: int
    limit: int
    skip: int
    sort_by: str
    sort_order: str


def calculate_pagination(params: PaginationParams | None, sortable: Iterable[str]) -> Pagination:
    """Apply defaults and bounds to raw pagination values.

    Raises `InvalidInput` for a page or limit below 1, an unknown sort
    field, or a sort order other than asc/desc. Limits above
    `MAX_PAGE_LIMIT` are clamped rather than rejected.
    """
    params = params or PaginationParams()
    page = 1 if params.page is None else params.page
    limit = settings.DEFAULT_PAGE_LIMIT if params.limit is None else params.limit
    if page < 1:
        raise InvalidInput("page must be >= 1")
    if limit < 1:
        raise InvalidInput("limit must be >= 1")
    limit = min(limit, settings.MAX_PAGE_LIMIT)

    sort_by = params.sort_by or DEFAULT_SORT_BY
    allowed = set(sortable)
    if sort_by not in allowed:
        raise InvalidInput(f"sort_by must be one of: {', '.join(sorted(allowed))}")
    sort_order = (params.sort_order or DEFAULT_SORT_ORDER).lower()
    if sort_order not in ("asc", "desc"):
        raise InvalidInput("sort_order must be 'asc' or 'desc'")

    return Pagination(page=page, limit=limit, skip=(page - 1) * limit, sort_by=sort_by, sort_order=sort_order)


def total_pages(total: int, limit: int) -> int:
    return math.ceil(total / limit) if total else 0


def page_meta(pagination: Pagination, total: int) -> PageMeta:
    return PageMeta(
        page=pagination.page,
        limit=pagination.limit,
        total=total,
        total_pages=total_pages(total, pagination.limit),
    )
