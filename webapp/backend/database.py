"""
Connection pools for the reporting workspaces.

Each workspace gets one AsyncEngine for the process lifetime. The engine is
created on first use; concurrent first callers await the same initialization
task, so a workspace is never opened twice.
"""
import asyncio
import logging
import os
from typing import Callable, Optional, Protocol

from dotenv import load_dotenv
from fastapi import Request
from sqlalchemy import text
from sqlalchemy.engine import URL, make_url
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine

from app_config.workspaces import (
    REPORTING_WORKSPACE_CONFIG,
    SQL_SERVER_ODBC_DRIVER,
    has_readonly_login,
    url_override_env,
)
from errors import UnknownWorkspace, WorkspaceUnavailable

# Load environment variables
load_dotenv()

logger = logging.getLogger(__name__)

# Engine options for SQL Server workspaces
SQL_SERVER_ENGINE_OPTIONS = {
    "pool_size": 5,
    "max_overflow": 10,
    "pool_timeout": 30,
    "pool_recycle": 3600,
    "pool_pre_ping": False,
    "echo": False,  # Set to True for SQL debugging
}


class SecretProvider(Protocol):
    """Anything that can resolve a named secret (Key Vault client, env, ...)."""

    async def get_secret(self, name: str) -> Optional[str]:
        ...


class EnvSecretProvider:
    """
    Resolve secrets from environment variables.

    The secret name is upper-cased with dashes replaced, so
    "helix-database-password" is read from HELIX_DATABASE_PASSWORD.
    """

    async def get_secret(self, name: str) -> Optional[str]:
        return os.getenv(name.upper().replace("-", "_"))


class PoolRegistry:
    """Lazily opened, process-wide engines keyed by workspace."""

    def __init__(
        self,
        workspaces: Optional[dict] = None,
        secret_provider: Optional[SecretProvider] = None,
        engine_factory: Callable[..., AsyncEngine] = create_async_engine,
    ):
        self._workspaces = REPORTING_WORKSPACE_CONFIG if workspaces is None else workspaces
        self._secret_provider = secret_provider or EnvSecretProvider()
        self._engine_factory = engine_factory
        self._pending: dict[str, asyncio.Task] = {}

    def is_known(self, workspace: str) -> bool:
        return workspace in self._workspaces

    def workspaces(self) -> list[tuple[str, dict]]:
        """Configured workspaces in display order."""
        return sorted(
            self._workspaces.items(),
            key=lambda item: item[1].get("priority", 100),
        )

    def open_workspaces(self) -> list[str]:
        """Keys whose engine finished opening successfully."""
        return [
            key for key, task in self._pending.items()
            if task.done() and not task.cancelled() and task.exception() is None
        ]

    async def get_engine(self, workspace: str, read_only: bool = False) -> AsyncEngine:
        """
        Return the engine for a workspace, opening it on first use.

        With read_only=True the workspace's read-only login is used when one
        is configured (config keys or REPORTING_DATABASE_URL__<KEY>__READONLY);
        otherwise the regular engine is returned.

        Raises:
            UnknownWorkspace: workspace is not configured
            WorkspaceUnavailable: credentials missing or connection failed
        """
        if not self.is_known(workspace):
            raise UnknownWorkspace(workspace)
        config = self._workspaces[workspace]

        read_only = read_only and has_readonly_login(workspace, config)
        key = f"{workspace}:readonly" if read_only else workspace

        task = self._pending.get(key)
        if task is None:
            task = asyncio.get_running_loop().create_task(
                self._open(workspace, config, read_only)
            )
            task.add_done_callback(lambda t, key=key: self._evict_failed(key, t))
            self._pending[key] = task

        # Shield so one cancelled request does not cancel the shared init
        return await asyncio.shield(task)

    def _evict_failed(self, key: str, task: asyncio.Task) -> None:
        # Failed initializations are not cached; the next request retries
        if task.cancelled() or task.exception() is not None:
            if self._pending.get(key) is task:
                del self._pending[key]

    async def _resolve_url(self, workspace: str, config: dict, read_only: bool) -> tuple[URL, dict]:
        override = os.getenv(url_override_env(workspace, read_only)) or config.get(
            "readonly_url" if read_only else "url"
        )
        if override:
            return make_url(override), config.get("engine_options", {})

        database = config["sql_database"]
        if read_only:
            user = config["readonly_user"]
            secret_name = config.get("readonly_secret_name", config["secret_name"])
        else:
            user = config["sql_user"]
            secret_name = config["secret_name"]

        try:
            password = await self._secret_provider.get_secret(secret_name)
        except Exception as e:
            logger.error(f"Secret lookup failed for workspace {workspace}: {e}", exc_info=True)
            raise WorkspaceUnavailable(
                f"Failed to connect to SQL Server for {database} DB."
            ) from e

        if not password:
            raise WorkspaceUnavailable(
                f'SQL password secret "{secret_name}" does not contain a value.'
            )

        url = URL.create(
            "mssql+aioodbc",
            username=user,
            password=password,
            host=config["sql_server"],
            port=config.get("sql_port", 1433),
            database=database,
            query={"driver": SQL_SERVER_ODBC_DRIVER, "Encrypt": "yes"},
        )
        return url, config.get("engine_options", SQL_SERVER_ENGINE_OPTIONS)

    async def _open(self, workspace: str, config: dict, read_only: bool) -> AsyncEngine:
        url, options = await self._resolve_url(workspace, config, read_only)
        database = url.database or workspace

        engine = self._engine_factory(url, **options)
        try:
            # Verify connectivity before publishing the engine
            async with engine.connect() as connection:
                await connection.execute(text("SELECT 1"))
        except (SQLAlchemyError, OSError) as e:
            await engine.dispose()
            logger.error(f"Failed to open pool for workspace {workspace}: {e}", exc_info=True)
            raise WorkspaceUnavailable(
                f"Failed to connect to SQL Server for {database} DB."
            ) from e

        logger.info(
            "Opened reporting pool for workspace %s (database=%s, read_only=%s)",
            workspace, database, read_only,
        )
        return engine

    async def dispose(self) -> None:
        """Dispose every engine opened so far."""
        pending = list(self._pending.values())
        self._pending.clear()
        results = await asyncio.gather(*pending, return_exceptions=True)
        for engine in results:
            if isinstance(engine, AsyncEngine):
                await engine.dispose()


def get_pool_registry(request: Request) -> PoolRegistry:
    """
    Dependency function to get the process-wide pool registry.
    Use this in FastAPI endpoints with Depends(get_pool_registry).
    """
    return request.app.state.pool_registry
