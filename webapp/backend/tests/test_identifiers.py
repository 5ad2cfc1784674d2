"""
Tests for identifier validation.

Schema, table and key-column names are interpolated into SQL text, so only
[A-Za-z0-9_]+ may pass.
"""
import pytest

from errors import UnsafeIdentifier
from services.identifiers import TableRef, is_safe_identifier, validate_identifier


class TestValidateIdentifier:

    @pytest.mark.parametrize("name", ["dbo", "Widgets", "order_items", "T1", "_hidden", "2024_sales"])
    def test_accepts_safe_names(self, name):
        assert validate_identifier(name, "table") == name

    @pytest.mark.parametrize("name", [
        "Orders;DROP",
        "dbo.Widgets",
        "Widgets]",
        "[Widgets]",
        "Name With Space",
        "name--",
        "a'b",
        "",
        "Widgets\n",
        "Prix€",
    ])
    def test_rejects_unsafe_names(self, name):
        with pytest.raises(UnsafeIdentifier):
            validate_identifier(name, "table")

    @pytest.mark.parametrize("value", [None, 42, ["dbo"]])
    def test_rejects_non_strings(self, value):
        assert not is_safe_identifier(value)
        with pytest.raises(UnsafeIdentifier):
            validate_identifier(value, "schema")

    def test_error_names_the_label(self):
        with pytest.raises(UnsafeIdentifier) as exc_info:
            validate_identifier("x;y", "key column")
        assert exc_info.value.label == "key column"
        assert exc_info.value.message == "Unsafe key column identifier provided."
        assert exc_info.value.status_code == 400


class TestTableRef:

    def test_parse_valid(self):
        ref = TableRef.parse("dbo", "Widgets")
        assert ref.schema == "dbo"
        assert ref.table == "Widgets"
        assert str(ref) == "dbo.Widgets"

    def test_parse_rejects_schema_first(self):
        with pytest.raises(UnsafeIdentifier) as exc_info:
            TableRef.parse("dbo;--", "Orders;DROP")
        assert exc_info.value.label == "schema"

    def test_parse_rejects_table(self):
        with pytest.raises(UnsafeIdentifier) as exc_info:
            TableRef.parse("dbo", "Orders;DROP")
        assert exc_info.value.label == "table"

    def test_is_immutable(self):
        ref = TableRef.parse("dbo", "Widgets")
        with pytest.raises(AttributeError):
            ref.table = "Other"
