"""
Identifier validation for names that are interpolated into SQL text.

Schema, table and key-column names cannot be bound as parameters, so they
must match a strict character set before any statement is built.
"""
import re
from dataclasses import dataclass

from errors import UnsafeIdentifier

SAFE_IDENTIFIER = re.compile(r"^[A-Za-z0-9_]+$")


def is_safe_identifier(name) -> bool:
    return isinstance(name, str) and SAFE_IDENTIFIER.fullmatch(name) is not None


def validate_identifier(name, label: str) -> str:
    """Return name unchanged, or raise UnsafeIdentifier."""
    if not is_safe_identifier(name):
        raise UnsafeIdentifier(label)
    return name


@dataclass(frozen=True)
class TableRef:
    schema: str
    table: str

    @classmethod
    def parse(cls, schema, table) -> "TableRef":
        return cls(
            schema=validate_identifier(schema, "schema"),
            table=validate_identifier(table, "table"),
        )

    def __str__(self) -> str:
        return f"{self.schema}.{self.table}"
