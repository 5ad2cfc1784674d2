"""
Tests for page-size clamping, order-column selection and paging math.
"""
import asyncio

import pytest
from sqlalchemy.ext.asyncio import create_async_engine
from sqlalchemy.pool import NullPool

from errors import InvalidOrderColumn, RowsLoadError
from schemas import ColumnDescriptor
from services.identifiers import TableRef
from services.introspection import fetch_columns
from services.pagination import (
    choose_order_column,
    clamp_page_size,
    paginate,
    total_pages_for,
)
from conftest import TEST_SCHEMA


def columns(*names):
    return [ColumnDescriptor(name=name, data_type="int", nullable=True) for name in names]


def paginate_table(db_path, table, **kwargs):
    async def main():
        engine = create_async_engine(f"sqlite+aiosqlite:///{db_path}", poolclass=NullPool)
        try:
            table_ref = TableRef.parse(TEST_SCHEMA, table)
            table_columns = await fetch_columns(engine, table_ref)
            return await paginate(engine, table_ref, table_columns, **kwargs)
        finally:
            await engine.dispose()
    return asyncio.run(main())


class TestPagingMath:

    @pytest.mark.parametrize("requested,expected", [
        (None, 50),
        (0, 50),
        (-5, 50),
        (1, 1),
        (50, 50),
        (200, 200),
        (500, 200),
    ])
    def test_clamp_page_size(self, requested, expected):
        assert clamp_page_size(requested) == expected

    @pytest.mark.parametrize("total,page_size,expected", [
        (0, 50, 0),
        (1, 50, 1),
        (50, 50, 1),
        (51, 50, 2),
        (120, 50, 3),
    ])
    def test_total_pages(self, total, page_size, expected):
        assert total_pages_for(total, page_size) == expected


class TestChooseOrderColumn:

    def test_defaults_to_first_column(self):
        assert choose_order_column(columns("Id", "Name")) == "Id"

    def test_no_columns(self):
        assert choose_order_column([]) is None

    def test_explicit_column(self):
        assert choose_order_column(columns("Id", "Name"), "Name") == "Name"

    def test_unknown_column(self):
        with pytest.raises(InvalidOrderColumn):
            choose_order_column(columns("Id", "Name"), "Price")

    def test_unsafe_column(self):
        with pytest.raises(InvalidOrderColumn):
            choose_order_column(columns("Id"), "Id; --")


class TestPaginate:

    def test_pages_over_120_rows(self, db_path, seed_readings):
        seed_readings(120)

        rows, state = paginate_table(db_path, "Readings", page=1, page_size=50)
        assert len(rows) == 50
        assert rows[0] == {"Id": 1, "Value": 10}
        assert (state.page, state.page_size, state.total, state.total_pages) == (1, 50, 120, 3)

        rows, state = paginate_table(db_path, "Readings", page=3, page_size=50)
        assert len(rows) == 20
        assert rows[0]["Id"] == 101

    def test_page_past_end_is_empty(self, db_path, seed_readings):
        seed_readings(120)
        rows, state = paginate_table(db_path, "Readings", page=4, page_size=50)
        assert rows == []
        assert state.total == 120
        assert state.total_pages == 3

    def test_page_size_capped(self, db_path, seed_readings):
        seed_readings(250)
        rows, state = paginate_table(db_path, "Readings", page=1, page_size=500)
        assert len(rows) == 200
        assert state.page_size == 200
        assert state.total_pages == 2

    def test_empty_table(self, db_path, sync_engine):
        rows, state = paginate_table(db_path, "EmptyTable")
        assert rows == []
        assert state.total == 0
        assert state.total_pages == 0

    def test_order_by_column(self, db_path, sync_engine):
        rows, _ = paginate_table(db_path, "Widgets", order_by="Name")
        assert [row["Name"] for row in rows] == ["Cog", "Gear", "Sprocket"]

    def test_missing_table_fails_to_load_rows(self, db_path, sync_engine):
        with pytest.raises(RowsLoadError):
            paginate_table(db_path, "NoSuchTable")
