# Overview: Page/limit handling shared by the listing endpoints.

from __future__ import annotations

from flask import current_app

from ..validation import ValidationError, coerce_bounded_int


def resolve_page(page, limit) -> tuple[int, int]:
    """Normalize page (1-indexed) and limit against the configured bounds."""
    default_limit = current_app.config.get("DEFAULT_PAGE_SIZE", 10)
    max_limit = current_app.config.get("MAX_PAGE_SIZE", 100)

    page = 1 if page in (None, "") else coerce_bounded_int(page, "page")
    limit = default_limit if limit in (None, "") else coerce_bounded_int(limit, "limit")
    if page < 1:
        raise ValidationError("page must be >= 1")
    if limit < 1:
        raise ValidationError("limit must be >= 1")
    return page, min(limit, max_limit)


def paginate(query, page, limit, serialize) -> dict:
    page, limit = resolve_page(page, limit)

    total = query.count()
    pages = (total + limit - 1) // limit if total > 0 else 0
    rows = query.offset((page - 1) * limit).limit(limit).all()

    return {
        "items": [serialize(row) for row in rows],
        "total": total,
        "page": page,
        "pages": pages,
        "limit": limit,
    }
