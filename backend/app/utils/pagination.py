"""
Pagination Utility Module

Provides page-based pagination for the audit API and DataTables server-side
processing helpers for the catalog and quote listings.
"""
from typing import List, Optional, Any, Dict
from dataclasses import dataclass, field
from fastapi import Request
from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.sql import Select

MAX_PAGE_SIZE = 100


async def paginate(
    db: AsyncSession,
    query: Select,
    page: int = 1,
    page_size: int = 10,
    count_query: Optional[Select] = None
) -> dict:
    """
    Apply pagination to a SQLAlchemy query.

    Args:
        db: Database session
        query: Base SQLAlchemy query
        page: Page number (1-indexed)
        page_size: Items per page
        count_query: Optional custom count query

    Returns:
        Dictionary with items, total, page, page_size, total_pages, has_next, has_previous
    """
    # Ensure valid page and page_size
    page = max(1, page)
    page_size = max(1, min(MAX_PAGE_SIZE, page_size))

    offset = (page - 1) * page_size

    # Get total count
    if count_query is not None:
        count_result = await db.execute(count_query)
    else:
        count_stmt = select(func.count()).select_from(query.subquery())
        count_result = await db.execute(count_stmt)

    total = count_result.scalar() or 0
    total_pages = (total + page_size - 1) // page_size if total > 0 else 1

    # Apply pagination
    paginated_query = query.offset(offset).limit(page_size)
    result = await db.execute(paginated_query)
    items = result.scalars().all()

    return {
        "items": items,
        "total": total,
        "page": page,
        "page_size": page_size,
        "total_pages": total_pages,
        "has_next": page < total_pages,
        "has_previous": page > 1
    }


# ==================== DataTables server-side processing ====================

@dataclass
class DataTablesParams:
    """Parameters sent by a DataTables client"""
    draw: int = 1
    start: int = 0
    length: int = 25
    search: str = ""
    order_column: Optional[int] = None
    order_dir: str = "asc"
    filters: Dict[str, str] = field(default_factory=dict)

    @property
    def descending(self) -> bool:
        return self.order_dir == "desc"


def _to_int(value: Optional[str], default: Optional[int]) -> Optional[int]:
    try:
        return int(value)
    except (TypeError, ValueError):
        return default


def parse_datatables_params(request: Request) -> DataTablesParams:
    """
    Read DataTables parameters from the query string.

    Bracketed keys (`search[value]`, `order[0][column]`, `order[0][dir]`) are
    read verbatim; `length` is clamped to 1..100 and `start` to >= 0.
    """
    query = request.query_params
    length = _to_int(query.get("length"), 25)
    order_dir = (query.get("order[0][dir]") or "asc").lower()

    reserved = {"draw", "start", "length", "search[value]", "order[0][column]", "order[0][dir]"}
    filters = {
        key: value for key, value in query.items()
        if key not in reserved and not key.startswith(("columns[", "search[", "order[", "_"))
    }

    return DataTablesParams(
        draw=_to_int(query.get("draw"), 1),
        start=max(0, _to_int(query.get("start"), 0)),
        length=max(1, min(MAX_PAGE_SIZE, length)),
        search=(query.get("search[value]") or "").strip(),
        order_column=_to_int(query.get("order[0][column]"), None),
        order_dir="desc" if order_dir == "desc" else "asc",
        filters=filters,
    )


async def datatables_query(
    db: AsyncSession,
    query: Select,
    params: DataTablesParams,
    base_query: Select,
    sortable_columns: List[Any],
    default_order: Any = None,
) -> dict:
    """
    Run a DataTables listing.

    `base_query` selects every row the caller may see (recordsTotal);
    `query` adds the search filter and is counted for recordsFiltered
    before ordering and slicing.
    """
    total = (await db.execute(
        select(func.count()).select_from(base_query.subquery())
    )).scalar() or 0
    filtered = (await db.execute(
        select(func.count()).select_from(query.subquery())
    )).scalar() or 0

    if params.order_column is not None and 0 <= params.order_column < len(sortable_columns):
        column = sortable_columns[params.order_column]
        query = query.order_by(column.desc() if params.descending else column.asc())
    elif default_order is not None:
        query = query.order_by(default_order)

    result = await db.execute(query.offset(params.start).limit(params.length))

    return {
        "items": result.scalars().all(),
        "draw": params.draw,
        "recordsTotal": total,
        "recordsFiltered": filtered,
    }


def datatables_response(params: DataTablesParams, listing: dict, data: List[Any]) -> dict:
    """Standard DataTables JSON envelope"""
    return {
        "success": True,
        "draw": params.draw,
        "recordsTotal": listing["recordsTotal"],
        "recordsFiltered": listing["recordsFiltered"],
        "data": data,
    }
