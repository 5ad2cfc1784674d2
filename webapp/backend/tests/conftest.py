"""
Pytest fixtures for the reporting API tests.

Every test gets its own SQLite file, so nothing leaks between tests.

Usage:
    pytest webapp/backend/tests/ -v
"""
import os
import sys
from pathlib import Path
from typing import Generator

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine, text
from sqlalchemy.engine import Engine
from sqlalchemy.pool import NullPool

sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

# Set test environment before importing app modules
os.environ.setdefault("ENVIRONMENT", "test")

from database import PoolRegistry, get_pool_registry
from main import app
from utils.rate_limiter import clear_rate_limits


TEST_WORKSPACE = "test-workspace"
TEST_PASSCODE = "test-passcode"

# SQLite's default schema
TEST_SCHEMA = "main"


def api_path(*parts: str) -> str:
    """Build a reporting API path for the test workspace."""
    return "/".join(["/api/reporting", TEST_WORKSPACE, *parts])


def table_path(table: str, *parts: str) -> str:
    return api_path("tables", TEST_SCHEMA, table, *parts)


def count_rows(engine: Engine, table: str = "Widgets") -> int:
    with engine.connect() as connection:
        return connection.execute(text(f'SELECT COUNT(*) FROM "{table}"')).scalar()


# ============================================================================
# Database Fixtures
# ============================================================================

@pytest.fixture
def db_path(tmp_path: Path) -> Path:
    """SQLite file shared by the seeding engine and the app's async engine."""
    return tmp_path / "reporting.db"


@pytest.fixture
def sync_engine(db_path: Path) -> Generator[Engine, None, None]:
    """
    Sync engine used to seed tables and to check row counts from outside
    the app's transactions.
    """
    engine = create_engine(f"sqlite:///{db_path}", poolclass=NullPool)
    with engine.begin() as connection:
        connection.execute(text(
            "CREATE TABLE Widgets ("
            " Id INTEGER PRIMARY KEY,"
            " Name VARCHAR(100) NOT NULL,"
            " Price NUMERIC(10, 2)"
            ")"
        ))
        connection.execute(text(
            "INSERT INTO Widgets (Id, Name, Price) VALUES"
            " (1, 'Sprocket', 2.50), (2, 'Gear', 4.00), (3, 'Cog', 1.25)"
        ))
        connection.execute(text("CREATE TABLE EmptyTable (Id INTEGER PRIMARY KEY, Label TEXT)"))
    try:
        yield engine
    finally:
        engine.dispose()


@pytest.fixture
def seed_readings(sync_engine: Engine):
    """Create a Readings table with the given number of rows."""
    def seed(row_count: int) -> None:
        with sync_engine.begin() as connection:
            connection.execute(text("CREATE TABLE Readings (Id INTEGER PRIMARY KEY, Value INTEGER)"))
            connection.execute(
                text("INSERT INTO Readings (Id, Value) VALUES (:id, :value)"),
                [{"id": i, "value": i * 10} for i in range(1, row_count + 1)],
            )
    return seed


@pytest.fixture
def workspace_config(db_path: Path) -> dict:
    return {
        TEST_WORKSPACE: {
            "display_name": "Test Workspace",
            "priority": 1,
            "url": f"sqlite+aiosqlite:///{db_path}",
            "engine_options": {"poolclass": NullPool},
        },
    }


@pytest.fixture
def registry(workspace_config: dict) -> PoolRegistry:
    return PoolRegistry(workspaces=workspace_config)


# ============================================================================
# App Fixtures
# ============================================================================

@pytest.fixture
def client(sync_engine: Engine, registry: PoolRegistry, monkeypatch) -> Generator[TestClient, None, None]:
    """
    FastAPI test client with the pool registry pointed at the SQLite file.
    """
    monkeypatch.setenv("REPORTING_QUERY_PASSCODE", TEST_PASSCODE)
    clear_rate_limits()
    app.dependency_overrides[get_pool_registry] = lambda: registry

    with TestClient(app) as test_client:
        yield test_client

    app.dependency_overrides.clear()
    clear_rate_limits()
