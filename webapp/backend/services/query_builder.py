"""
Allow-list filtering and the single SQL statement builder.

Every statement the reporting API runs against a table (other than ad-hoc
queries) is produced here. Identifiers are validated or allow-listed by the
caller, then quoted with the engine's dialect; values only ever travel as
bound parameters.
"""
from dataclasses import dataclass, field
from typing import Any, Iterable, Optional

from sqlalchemy import text
from sqlalchemy.sql.elements import TextClause

from errors import InvalidKeyColumn
from services.identifiers import TableRef

# ORDER BY target when a table advertises no columns
ORDER_FALLBACK = "(SELECT NULL)"


@dataclass(frozen=True)
class BuiltStatement:
    sql: str
    params: dict[str, Any] = field(default_factory=dict)

    @property
    def clause(self) -> TextClause:
        return text(self.sql)


def filter_allowed(candidate: dict, allow_set: Iterable[str]) -> dict:
    """Keep only entries whose key is a known column, preserving order."""
    allowed = set(allow_set)
    return {key: value for key, value in candidate.items() if key in allowed}


def find_unknown(candidate: dict, allow_set: Iterable[str]) -> list[str]:
    allowed = set(allow_set)
    return [key for key in candidate if key not in allowed]


def require_key_column(key_column: str, allow_set: Iterable[str]) -> str:
    """
    Key columns are never filtered: they must be a column of the table.

    The caller validates the name with validate_identifier before opening
    the workspace engine.

    Raises:
        InvalidKeyColumn: name is not a column of the table
    """
    if key_column not in set(allow_set):
        raise InvalidKeyColumn()
    return key_column


class QueryBuilder:
    """Builds parameterized statements for one SQL dialect."""

    def __init__(self, dialect):
        self.dialect = dialect
        self._preparer = dialect.identifier_preparer

    @classmethod
    def for_engine(cls, engine) -> "QueryBuilder":
        return cls(engine.dialect)

    def quote(self, name: str) -> str:
        quoted = self._preparer.quote_identifier(name)
        # A colon inside a quoted name must not be read as a bind parameter
        return quoted.replace(":", "\\:")

    def table_name(self, table_ref: TableRef) -> str:
        return f"{self.quote(table_ref.schema)}.{self.quote(table_ref.table)}"

    def _window(self) -> str:
        if self.dialect.name == "mssql":
            return "OFFSET :offset ROWS FETCH NEXT :limit ROWS ONLY"
        return "LIMIT :limit OFFSET :offset"

    def select_page(
        self,
        table_ref: TableRef,
        order_column: Optional[str],
        offset: int,
        limit: int,
    ) -> BuiltStatement:
        order = self.quote(order_column) if order_column else ORDER_FALLBACK
        return BuiltStatement(
            f"SELECT * FROM {self.table_name(table_ref)} ORDER BY {order} {self._window()}",
            {"offset": offset, "limit": limit},
        )

    def count(self, table_ref: TableRef) -> BuiltStatement:
        return BuiltStatement(f"SELECT COUNT(*) FROM {self.table_name(table_ref)}")

    def count_matching(self, table_ref: TableRef, key_column: str, key_value: Any) -> BuiltStatement:
        return BuiltStatement(
            f"SELECT COUNT(*) FROM {self.table_name(table_ref)} "
            f"WHERE {self.quote(key_column)} = :key_value",
            {"key_value": key_value},
        )

    def insert(self, table_ref: TableRef, values: dict) -> BuiltStatement:
        if not values:
            raise ValueError("insert requires at least one column")
        columns = ", ".join(self.quote(name) for name in values)
        placeholders = ", ".join(f":p{i}" for i in range(len(values)))
        params = {f"p{i}": value for i, value in enumerate(values.values())}
        return BuiltStatement(
            f"INSERT INTO {self.table_name(table_ref)} ({columns}) VALUES ({placeholders})",
            params,
        )

    def update(self, table_ref: TableRef, key_column: str, key_value: Any, updates: dict) -> BuiltStatement:
        if not updates:
            raise ValueError("update requires at least one column")
        set_clause = ", ".join(
            f"{self.quote(name)} = :p{i}" for i, name in enumerate(updates)
        )
        params = {f"p{i}": value for i, value in enumerate(updates.values())}
        params["key_value"] = key_value
        return BuiltStatement(
            f"UPDATE {self.table_name(table_ref)} SET {set_clause} "
            f"WHERE {self.quote(key_column)} = :key_value",
            params,
        )

    def delete(self, table_ref: TableRef, key_column: str, key_value: Any) -> BuiltStatement:
        return BuiltStatement(
            f"DELETE FROM {self.table_name(table_ref)} WHERE {self.quote(key_column)} = :key_value",
            {"key_value": key_value},
        )
