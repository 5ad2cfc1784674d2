"""
Offset/limit paging over a reporting table.

Rows are ordered by an explicit column when the caller supplies one, else by
the first column in ordinal position. That column is not necessarily unique,
so page boundaries are only stable when it has no duplicates across them.
"""
import logging
import math
from typing import Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncEngine

from constants import DEFAULT_PAGE_SIZE, MAX_PAGE_SIZE
from errors import InvalidOrderColumn, RowsLoadError
from schemas import ColumnDescriptor, PaginationState
from services.identifiers import TableRef, is_safe_identifier
from services.query_builder import QueryBuilder
from utils.serializers import serialize_row

logger = logging.getLogger(__name__)


def clamp_page_size(page_size: Optional[int]) -> int:
    if not page_size or page_size < 1:
        return DEFAULT_PAGE_SIZE
    return min(page_size, MAX_PAGE_SIZE)


def total_pages_for(total: int, page_size: int) -> int:
    """Number of pages; an empty table has zero pages."""
    if total <= 0:
        return 0
    return math.ceil(total / page_size)


def choose_order_column(columns: list[ColumnDescriptor], order_by: Optional[str] = None) -> Optional[str]:
    """
    Pick the ORDER BY column.

    An explicit order_by must be a safe identifier and a column of the table.
    Otherwise the first ordinal column is used, or None when there are no
    columns (the builder then orders by a constant).
    """
    names = [col.name for col in columns]
    if order_by is not None:
        if not is_safe_identifier(order_by) or order_by not in names:
            raise InvalidOrderColumn()
        return order_by
    return names[0] if names else None


async def paginate(
    engine: AsyncEngine,
    table_ref: TableRef,
    columns: list[ColumnDescriptor],
    page: int = 1,
    page_size: Optional[int] = DEFAULT_PAGE_SIZE,
    order_by: Optional[str] = None,
) -> tuple[list[dict], PaginationState]:
    """
    Fetch one page of rows plus the recomputed pagination state.

    Pages past the end return no rows; totalPages is unaffected.
    """
    page = max(page or 1, 1)
    page_size = clamp_page_size(page_size)
    offset = (page - 1) * page_size
    order_column = choose_order_column(columns, order_by)

    builder = QueryBuilder.for_engine(engine)
    count_statement = builder.count(table_ref)
    page_statement = builder.select_page(table_ref, order_column, offset, page_size)

    try:
        async with engine.connect() as connection:
            total = (await connection.execute(count_statement.clause)).scalar() or 0
            result = await connection.execute(page_statement.clause, page_statement.params)
            rows = [serialize_row(dict(row._mapping)) for row in result]
    except SQLAlchemyError as e:
        logger.error(f"Query failed for table {table_ref}: {e}", exc_info=True)
        raise RowsLoadError() from e

    state = PaginationState(
        page=page,
        page_size=page_size,
        total=total,
        total_pages=total_pages_for(total, page_size),
    )
    return rows, state
