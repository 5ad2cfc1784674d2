"""
Reporting Hub Router

Schema-driven access to the tables of a reporting workspace:
- List tables and inspect column metadata
- Page through rows
- Insert, update and delete rows, each with a preview that always rolls back
- Run passcode-gated ad-hoc SELECT queries

Security: schema, table and key-column names must match [A-Za-z0-9_]+ before
any SQL is built; payload keys are checked against the live column list;
values are always bound parameters.
"""
import logging
import os
from typing import Optional

from fastapi import APIRouter, Depends, Header, Query, Request
from sqlalchemy.ext.asyncio import AsyncEngine

from constants import DEFAULT_PAGE_SIZE, PASSCODE_HEADER, ExecutionMode
from database import PoolRegistry, get_pool_registry
from errors import NoValidColumns, NoValidUpdates, UnknownColumns
from schemas import (
    ColumnsResponse,
    DeleteRequest,
    DeleteResponse,
    InsertRequest,
    InsertResponse,
    PreviewResponse,
    QueryRequest,
    QueryResponse,
    RowsResponse,
    TableListResponse,
    UpdateRequest,
    UpdateResponse,
    WorkspaceInfo,
    WorkspaceListResponse,
)
from services.identifiers import TableRef, validate_identifier
from services.introspection import fetch_allow_set, fetch_columns, fetch_tables
from services.pagination import paginate
from services.query_builder import (
    BuiltStatement,
    QueryBuilder,
    filter_allowed,
    find_unknown,
    require_key_column,
)
from services.query_gate import QueryGate, execute_read_query
from services.transactions import run_mutation
from utils.rate_limiter import check_ip_rate_limit, get_client_ip

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Reporting"])


# ============================================================================
# Constants
# ============================================================================

# Reject insert/update payloads with unknown columns instead of dropping them
REJECT_UNKNOWN_COLUMNS = os.getenv("REPORTING_REJECT_UNKNOWN_COLUMNS", "false").lower() == "true"

# Re-check that the key matches a row inside the commit transaction
RECHECK_KEY_ON_COMMIT = os.getenv("REPORTING_RECHECK_KEY_ON_COMMIT", "false").lower() == "true"


# ============================================================================
# Helper Functions
# ============================================================================

def get_query_gate() -> QueryGate:
    """Gate configured from the environment, evaluated per request."""
    return QueryGate.from_env()


def filter_payload(candidate: dict, allow_set: frozenset[str], empty_error: type) -> dict:
    """Apply the unknown-column policy, then drop keys outside the allow set."""
    if REJECT_UNKNOWN_COLUMNS:
        unknown = find_unknown(candidate, allow_set)
        if unknown:
            raise UnknownColumns(unknown)
    filtered = filter_allowed(candidate, allow_set)
    if not filtered:
        raise empty_error()
    return filtered


async def prepare_insert(
    registry: PoolRegistry,
    workspace: str,
    table_ref: TableRef,
    body: InsertRequest,
) -> tuple[AsyncEngine, BuiltStatement, list[str]]:
    engine = await registry.get_engine(workspace)
    _, allow_set = await fetch_allow_set(engine, table_ref)
    values = filter_payload(body.values, allow_set, NoValidColumns)
    statement = QueryBuilder.for_engine(engine).insert(table_ref, values)
    return engine, statement, list(values)


async def prepare_update(
    registry: PoolRegistry,
    workspace: str,
    table_ref: TableRef,
    body: UpdateRequest,
    mode: ExecutionMode,
) -> tuple[AsyncEngine, BuiltStatement, Optional[BuiltStatement]]:
    validate_identifier(body.key_column, "key column")
    engine = await registry.get_engine(workspace)
    _, allow_set = await fetch_allow_set(engine, table_ref)
    key_column = require_key_column(body.key_column, allow_set)
    updates = filter_payload(body.updates, allow_set, NoValidUpdates)

    builder = QueryBuilder.for_engine(engine)
    statement = builder.update(table_ref, key_column, body.key_value, updates)
    return engine, statement, recheck_for(builder, table_ref, key_column, body.key_value, mode)


async def prepare_delete(
    registry: PoolRegistry,
    workspace: str,
    table_ref: TableRef,
    body: DeleteRequest,
    mode: ExecutionMode,
) -> tuple[AsyncEngine, BuiltStatement, Optional[BuiltStatement]]:
    validate_identifier(body.key_column, "key column")
    engine = await registry.get_engine(workspace)
    _, allow_set = await fetch_allow_set(engine, table_ref)
    key_column = require_key_column(body.key_column, allow_set)

    builder = QueryBuilder.for_engine(engine)
    statement = builder.delete(table_ref, key_column, body.key_value)
    return engine, statement, recheck_for(builder, table_ref, key_column, body.key_value, mode)


def recheck_for(builder, table_ref, key_column, key_value, mode) -> Optional[BuiltStatement]:
    if mode is ExecutionMode.COMMIT and RECHECK_KEY_ON_COMMIT:
        return builder.count_matching(table_ref, key_column, key_value)
    return None


# ============================================================================
# Catalog Endpoints
# ============================================================================

@router.get("/workspaces", response_model=WorkspaceListResponse)
async def list_workspaces(registry: PoolRegistry = Depends(get_pool_registry)):
    """List the configured reporting workspaces in display order."""
    return WorkspaceListResponse(workspaces=[
        WorkspaceInfo(key=key, display_name=config.get("display_name", key))
        for key, config in registry.workspaces()
    ])


@router.get("/{workspace}/tables", response_model=TableListResponse)
async def list_tables(
    workspace: str,
    registry: PoolRegistry = Depends(get_pool_registry),
):
    """List base tables ordered by schema and name."""
    engine = await registry.get_engine(workspace)
    return TableListResponse(tables=await fetch_tables(engine))


@router.get("/{workspace}/tables/{schema}/{table}/columns", response_model=ColumnsResponse)
async def get_columns(
    workspace: str,
    schema: str,
    table: str,
    registry: PoolRegistry = Depends(get_pool_registry),
):
    """Get the column list of a table in ordinal order."""
    table_ref = TableRef.parse(schema, table)
    engine = await registry.get_engine(workspace)
    columns = await fetch_columns(engine, table_ref)
    return ColumnsResponse(schema=table_ref.schema, table=table_ref.table, columns=columns)


@router.get("/{workspace}/tables/{schema}/{table}/rows", response_model=RowsResponse)
async def list_rows(
    workspace: str,
    schema: str,
    table: str,
    page: int = Query(1, ge=1),
    page_size: Optional[int] = Query(None, alias="pageSize", ge=1),
    limit: Optional[int] = Query(None, ge=1, description="Alias of pageSize"),
    order_by: Optional[str] = Query(None, alias="orderBy"),
    registry: PoolRegistry = Depends(get_pool_registry),
):
    """
    Page through a table's rows.

    pageSize is capped at 200. Without orderBy, rows are ordered by the
    first column in ordinal position.
    """
    table_ref = TableRef.parse(schema, table)
    if order_by is not None:
        validate_identifier(order_by, "order column")

    engine = await registry.get_engine(workspace)
    columns = await fetch_columns(engine, table_ref)
    rows, pagination = await paginate(
        engine,
        table_ref,
        columns,
        page=page,
        page_size=page_size or limit or DEFAULT_PAGE_SIZE,
        order_by=order_by,
    )
    return RowsResponse(
        schema=table_ref.schema,
        table=table_ref.table,
        rows=rows,
        pagination=pagination,
    )


# ============================================================================
# Ad-hoc Query
# ============================================================================

@router.post("/{workspace}/tables/{schema}/{table}/query", response_model=QueryResponse)
async def run_query(
    workspace: str,
    schema: str,
    table: str,
    request: Request,
    body: Optional[QueryRequest] = None,
    header_passcode: Optional[str] = Header(None, alias=PASSCODE_HEADER),
    gate: QueryGate = Depends(get_query_gate),
    registry: PoolRegistry = Depends(get_pool_registry),
):
    """
    Execute a passcode-gated SELECT.

    The passcode comes from the body, or from the x-reporting-passcode header.
    Rows are returned uncapped.
    """
    table_ref = TableRef.parse(schema, table)
    check_ip_rate_limit(request, "reporting_query")

    body = body or QueryRequest()
    supplied = body.passcode if body.passcode is not None else header_passcode
    query = gate.authorize(body.query, supplied)

    # Security audit log - always log query execution attempts that pass the gate
    logger.warning(
        f"AD_HOC_QUERY_AUDIT: workspace={workspace} table={table_ref} "
        f"client={get_client_ip(request)} length={len(query)} first 200 chars: {query[:200]}"
    )

    engine = await registry.get_engine(workspace, read_only=True)
    rows = await execute_read_query(engine, query)
    return QueryResponse(
        schema=table_ref.schema,
        table=table_ref.table,
        rows=rows,
        row_count=len(rows),
    )


# ============================================================================
# Insert
# ============================================================================

@router.post("/{workspace}/tables/{schema}/{table}/insert/preview", response_model=PreviewResponse)
async def preview_insert(
    workspace: str,
    schema: str,
    table: str,
    body: InsertRequest,
    request: Request,
    registry: PoolRegistry = Depends(get_pool_registry),
):
    """Run the insert and roll it back, reporting rowsAffected."""
    table_ref = TableRef.parse(schema, table)
    check_ip_rate_limit(request, "reporting_preview")

    engine, statement, _ = await prepare_insert(registry, workspace, table_ref, body)
    outcome = await run_mutation(
        engine, statement, ExecutionMode.PREVIEW, context=f"insert on {workspace}/{table_ref}"
    )
    return PreviewResponse(rows_affected=outcome.rows_affected)


@router.post("/{workspace}/tables/{schema}/{table}/insert", response_model=InsertResponse)
async def insert_row(
    workspace: str,
    schema: str,
    table: str,
    body: InsertRequest,
    request: Request,
    registry: PoolRegistry = Depends(get_pool_registry),
):
    """Insert one row using only the columns the table declares."""
    table_ref = TableRef.parse(schema, table)
    check_ip_rate_limit(request, "reporting_write")

    engine, statement, inserted_columns = await prepare_insert(registry, workspace, table_ref, body)
    outcome = await run_mutation(
        engine, statement, ExecutionMode.COMMIT, context=f"insert on {workspace}/{table_ref}"
    )
    return InsertResponse(inserted_columns=inserted_columns, rows_affected=outcome.rows_affected)


# ============================================================================
# Update
# ============================================================================

@router.patch("/{workspace}/tables/{schema}/{table}/update/preview", response_model=PreviewResponse)
async def preview_update(
    workspace: str,
    schema: str,
    table: str,
    body: UpdateRequest,
    request: Request,
    registry: PoolRegistry = Depends(get_pool_registry),
):
    """Run the update and roll it back, reporting rowsAffected."""
    table_ref = TableRef.parse(schema, table)
    check_ip_rate_limit(request, "reporting_preview")

    engine, statement, _ = await prepare_update(
        registry, workspace, table_ref, body, ExecutionMode.PREVIEW
    )
    outcome = await run_mutation(
        engine, statement, ExecutionMode.PREVIEW, context=f"update on {workspace}/{table_ref}"
    )
    return PreviewResponse(rows_affected=outcome.rows_affected)


@router.patch("/{workspace}/tables/{schema}/{table}/update", response_model=UpdateResponse)
async def update_rows(
    workspace: str,
    schema: str,
    table: str,
    body: UpdateRequest,
    request: Request,
    registry: PoolRegistry = Depends(get_pool_registry),
):
    """Update every row where keyColumn = keyValue."""
    table_ref = TableRef.parse(schema, table)
    check_ip_rate_limit(request, "reporting_write")

    engine, statement, precheck = await prepare_update(
        registry, workspace, table_ref, body, ExecutionMode.COMMIT
    )
    outcome = await run_mutation(
        engine,
        statement,
        ExecutionMode.COMMIT,
        precheck=precheck,
        context=f"update on {workspace}/{table_ref}",
    )
    return UpdateResponse(rows_affected=outcome.rows_affected)


# ============================================================================
# Delete
# ============================================================================

@router.delete("/{workspace}/tables/{schema}/{table}/delete/preview", response_model=PreviewResponse)
async def preview_delete(
    workspace: str,
    schema: str,
    table: str,
    body: DeleteRequest,
    request: Request,
    registry: PoolRegistry = Depends(get_pool_registry),
):
    """Run the delete and roll it back, reporting rowsAffected."""
    table_ref = TableRef.parse(schema, table)
    check_ip_rate_limit(request, "reporting_preview")

    engine, statement, _ = await prepare_delete(
        registry, workspace, table_ref, body, ExecutionMode.PREVIEW
    )
    outcome = await run_mutation(
        engine, statement, ExecutionMode.PREVIEW, context=f"delete on {workspace}/{table_ref}"
    )
    return PreviewResponse(rows_affected=outcome.rows_affected)


@router.delete("/{workspace}/tables/{schema}/{table}/delete", response_model=DeleteResponse)
async def delete_rows(
    workspace: str,
    schema: str,
    table: str,
    body: DeleteRequest,
    request: Request,
    registry: PoolRegistry = Depends(get_pool_registry),
):
    """Delete every row where keyColumn = keyValue."""
    table_ref = TableRef.parse(schema, table)
    check_ip_rate_limit(request, "reporting_write")

    engine, statement, precheck = await prepare_delete(
        registry, workspace, table_ref, body, ExecutionMode.COMMIT
    )
    outcome = await run_mutation(
        engine,
        statement,
        ExecutionMode.COMMIT,
        precheck=precheck,
        context=f"delete on {workspace}/{table_ref}",
    )
    return DeleteResponse(rows_affected=outcome.rows_affected)
