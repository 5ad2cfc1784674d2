"""
Live schema metadata for reporting tables.

Column lists are read fresh on every call and are the only source of truth
for which columns a request may touch.
"""
import logging

from sqlalchemy import inspect
from sqlalchemy.exc import NoSuchTableError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncEngine

from errors import SchemaLoadError
from schemas import ColumnDescriptor, TableListing
from services.identifiers import TableRef

logger = logging.getLogger(__name__)

# Catalog schemas never offered for browsing
SYSTEM_SCHEMAS = {"information_schema", "sys"}


def get_declared_type_name(col_type, dialect) -> str:
    """Declared type name without length/precision, e.g. NVARCHAR(50) -> nvarchar."""
    try:
        compiled = col_type.compile(dialect=dialect)
    except Exception:
        compiled = type(col_type).__name__
    return compiled.split("(")[0].strip().lower()


async def fetch_columns(engine: AsyncEngine, table_ref: TableRef) -> list[ColumnDescriptor]:
    """
    Get the ordered column list of a table.

    Columns come back in ascending ordinal position. A table the catalog
    does not know yields an empty list.

    Raises:
        SchemaLoadError: catalog query failed (detail is logged, not returned)
    """
    def load(sync_conn) -> list[ColumnDescriptor]:
        inspector = inspect(sync_conn)
        try:
            columns = inspector.get_columns(table_ref.table, schema=table_ref.schema)
        except NoSuchTableError:
            return []
        return [
            ColumnDescriptor(
                name=col["name"],
                data_type=get_declared_type_name(col["type"], sync_conn.dialect),
                nullable=bool(col.get("nullable", True)),
            )
            for col in columns
        ]

    try:
        async with engine.connect() as connection:
            return await connection.run_sync(load)
    except SQLAlchemyError as e:
        logger.error(f"Failed to load columns for {table_ref}: {e}", exc_info=True)
        raise SchemaLoadError("Failed to load columns.") from e


async def fetch_allow_set(engine: AsyncEngine, table_ref: TableRef) -> tuple[list[ColumnDescriptor], frozenset[str]]:
    """Get the column list together with its AllowSet of names."""
    columns = await fetch_columns(engine, table_ref)
    return columns, frozenset(col.name for col in columns)


async def fetch_tables(engine: AsyncEngine) -> list[TableListing]:
    """List base tables ordered by schema, then table name."""
    def load(sync_conn) -> list[TableListing]:
        inspector = inspect(sync_conn)
        listings = []
        for schema in sorted(inspector.get_schema_names()):
            if schema.lower() in SYSTEM_SCHEMAS:
                continue
            for table in sorted(inspector.get_table_names(schema=schema)):
                listings.append(TableListing(table_schema=schema, table_name=table))
        return listings

    try:
        async with engine.connect() as connection:
            return await connection.run_sync(load)
    except SQLAlchemyError as e:
        logger.error(f"Failed to load tables: {e}", exc_info=True)
        raise SchemaLoadError("Failed to load tables.") from e
