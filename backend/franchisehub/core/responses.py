"""Standardized API response helpers.

Every endpoint answers with the same envelope:
    {"success": true, "data": ..., "message": "..."}

Paginated endpoints add a pagination block:
    {"success": true, "data": [...], "pagination": {"total", "per_page",
     "current_page", "last_page", "from", "to"}}

Errors are shaped by the handlers in franchisehub.core.errors.
"""

import math
from typing import Any, Optional


def success_response(data: Any = None, message: Optional[str] = None) -> dict:
    """Wrap a payload in the success envelope."""
    body = {"success": True, "data": data}
    if message is not None:
        body["message"] = message
    return body


def pagination_meta(total: int, page: int, per_page: int, count: int) -> dict:
    last_page = max(math.ceil(total / per_page), 1) if per_page else 1
    first = (page - 1) * per_page + 1 if count else None
    return {
        "total": total,
        "per_page": per_page,
        "current_page": page,
        "last_page": last_page,
        "from": first,
        "to": first + count - 1 if count else None,
    }


def paginated_response(
    items: list,
    total: int,
    page: int = 1,
    per_page: int = 15,
    message: Optional[str] = None,
) -> dict:
    """Wrap a page of serialized items in the paginated envelope.

    Args:
        items: The page of serialized items.
        total: Total count across all pages.
        page: 1-based page number.
        per_page: Page size requested.
    """
    body = {
        "success": True,
        "data": items,
        "pagination": pagination_meta(total, page, per_page, len(items)),
    }
    if message is not None:
        body["message"] = message
    return body


def serialize(schema, obj) -> dict:
    """Validate an ORM object through ``schema`` and return plain python data."""
    return schema.model_validate(obj).model_dump()


def serialize_many(schema, objs) -> list:
    return [serialize(schema, o) for o in objs]
