"""
Pydantic schemas for API request/response validation.
These define the structure of data sent to and from the reporting API.
Field names are snake_case in Python and camelCase on the wire.
"""
from typing import Any, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

# Request size limits
MAX_PAYLOAD_FIELDS = 100
MAX_VALUE_LENGTH = 100_000
MAX_QUERY_LENGTH = 10_000

KeyValue = Union[str, int, float, bool]


class CamelModel(BaseModel):
    """Base model serialized with camelCase aliases."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


def check_payload_size(data: dict, label: str) -> dict:
    """Validate a column/value dict isn't too large."""
    if len(data) > MAX_PAYLOAD_FIELDS:
        raise ValueError(f"Too many fields in {label} (max {MAX_PAYLOAD_FIELDS})")
    for key, value in data.items():
        if isinstance(value, str) and len(value) > MAX_VALUE_LENGTH:
            raise ValueError(f"Field '{key}' is too large (max 100KB)")
    return data


# ============================================
# Catalog Schemas
# ============================================

class WorkspaceInfo(CamelModel):
    key: str
    display_name: str


class WorkspaceListResponse(CamelModel):
    workspaces: list[WorkspaceInfo]


class TableListing(BaseModel):
    """One base table as reported by the catalog."""
    model_config = ConfigDict(populate_by_name=True)

    table_schema: str = Field(..., alias="TABLE_SCHEMA")
    table_name: str = Field(..., alias="TABLE_NAME")


class TableListResponse(BaseModel):
    tables: list[TableListing]


class ColumnDescriptor(CamelModel):
    """One column of live schema metadata, in ordinal order."""
    name: str
    data_type: str
    nullable: bool


class ColumnsResponse(CamelModel):
    schema_name: str = Field(..., alias="schema")
    table: str
    columns: list[ColumnDescriptor]


# ============================================
# Row Schemas
# ============================================

class PaginationState(CamelModel):
    page: int = Field(..., ge=1)
    page_size: int = Field(..., ge=1)
    total: int = Field(..., ge=0)
    total_pages: int = Field(..., ge=0)


class RowsResponse(CamelModel):
    schema_name: str = Field(..., alias="schema")
    table: str
    rows: list[dict[str, Any]]
    pagination: PaginationState


class QueryRequest(CamelModel):
    """Ad-hoc query body. The passcode may also arrive as a header."""
    query: Optional[str] = Field(None, max_length=MAX_QUERY_LENGTH)
    passcode: Optional[str] = None


class QueryResponse(CamelModel):
    schema_name: str = Field(..., alias="schema")
    table: str
    rows: list[dict[str, Any]]
    row_count: int


# ============================================
# Mutation Schemas
# ============================================

class InsertRequest(CamelModel):
    values: dict[str, Any]

    @field_validator("values")
    @classmethod
    def validate_values(cls, v: dict) -> dict:
        return check_payload_size(v, "values")


class KeyedRequest(CamelModel):
    """Base for requests that target rows by keyColumn = keyValue."""
    key_column: str = Field(..., min_length=1)
    key_value: Optional[KeyValue]

    @field_validator("key_value")
    @classmethod
    def validate_key_value(cls, v):
        if v is None:
            raise ValueError("keyValue is required.")
        return v


class UpdateRequest(KeyedRequest):
    updates: dict[str, Any]

    @field_validator("updates")
    @classmethod
    def validate_updates(cls, v: dict) -> dict:
        return check_payload_size(v, "updates")


class DeleteRequest(KeyedRequest):
    pass


class PreviewResponse(CamelModel):
    status: str = "preview"
    rows_affected: int


class InsertResponse(CamelModel):
    status: str = "inserted"
    inserted_columns: list[str]
    rows_affected: int


class UpdateResponse(CamelModel):
    status: str = "updated"
    rows_affected: int


class DeleteResponse(CamelModel):
    status: str = "deleted"
    rows_affected: int
