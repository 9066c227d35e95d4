"""Pagination, search and sorting helpers shared by every list endpoint."""

from typing import Annotated, Any, Dict, Iterable, Literal, Optional

from fastapi import Depends, Query
from pydantic import BaseModel, Field
from sqlalchemy import or_


class PaginationParams(BaseModel):
    """Standard list parameters."""

    page: int = Field(default=1, ge=1)
    per_page: int = Field(default=15, ge=1, le=100)
    search: Optional[str] = None
    sort_by: Optional[str] = None
    sort_order: Literal["asc", "desc"] = "desc"


def get_pagination_params(
    page: int = Query(1, ge=1),
    per_page: int = Query(15, ge=1, le=100),
    search: Optional[str] = Query(None, max_length=255),
    sortBy: Optional[str] = Query(None),
    sort_by: Optional[str] = Query(None),
    sortOrder: Optional[Literal["asc", "desc"]] = Query(None),
    sort_order: Optional[Literal["asc", "desc"]] = Query(None),
) -> PaginationParams:
    """Accept both camelCase and snake_case sort parameters."""
    return PaginationParams(
        page=page,
        per_page=per_page,
        search=search.strip() if search and search.strip() else None,
        sort_by=sortBy or sort_by,
        sort_order=sortOrder or sort_order or "desc",
    )


ListParams = Annotated[PaginationParams, Depends(get_pagination_params)]


def apply_filters(query, model, filters: Dict[str, Any]):
    """Equality filters; ``None`` values are ignored."""
    for field, value in filters.items():
        if value is None:
            continue
        query = query.filter(getattr(model, field) == value)
    return query


def escape_like(value: str) -> str:
    """Escape LIKE wildcards so user text matches literally."""
    return value.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


def apply_search(query, search: Optional[str], columns: Iterable):
    """Case-insensitive substring match over ``columns``."""
    if not search:
        return query
    pattern = f"%{escape_like(search)}%"
    return query.filter(or_(*[col.ilike(pattern, escape="\\") for col in columns]))


def apply_sort(
    query,
    model,
    sort_by: Optional[str],
    sort_order: str = "desc",
    allowed: Iterable[str] = (),
    default: str = "created_at",
):
    """Order by a whitelisted column, falling back to ``default``."""
    column_name = sort_by if sort_by in set(allowed) else default
    column = getattr(model, column_name)
    ordered = column.asc() if (sort_order == "asc" and column_name == sort_by) else column.desc()
    return query.order_by(ordered, model.id.desc())


def paginate_query(query, page: int = 1, per_page: int = 15):
    """
    Apply pagination to a SQLAlchemy query.

    Returns:
        Tuple of (page items, total count)
    """
    total = query.order_by(None).count()
    items = query.offset((page - 1) * per_page).limit(per_page).all()
    return items, total
