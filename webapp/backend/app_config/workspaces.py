"""
Configuration for the reporting hub workspaces.
Defines which databases can be addressed and how to reach them.
"""
import os

# Workspaces that can be addressed via /api/reporting/{workspace}
# Priority determines display order (lower = higher priority)
REPORTING_WORKSPACE_CONFIG = {
    "helix-project-data": {
        "display_name": "Helix Project Data",
        "priority": 1,
        "sql_server": "helix-database-server.database.windows.net",
        "sql_user": "helix-database-server",
        "sql_database": "helix-project-data",
        "secret_name": "helix-database-password",
    },
    "helix-core-data": {
        "display_name": "Helix Core Data",
        "priority": 2,
        "sql_server": "helix-database-server.database.windows.net",
        "sql_user": "helix-database-server",
        "sql_database": "helix-core-data",
        "secret_name": "helix-database-password",
    },
    "instructions": {
        "display_name": "Instructions",
        "priority": 3,
        "sql_server": "instructions.database.windows.net",
        "sql_user": "instructionsadmin",
        "sql_database": "instructions",
        "secret_name": "helix-instructions-password",
        # Optional read-only login for the ad-hoc query path, e.g.
        # "readonly_user": "instructionsreader",
        # "readonly_secret_name": "helix-instructions-reader-password",
    },
}

# ODBC driver used for SQL Server workspaces
SQL_SERVER_ODBC_DRIVER = os.getenv("REPORTING_ODBC_DRIVER", "ODBC Driver 18 for SQL Server")


def url_override_env(workspace: str, read_only: bool = False) -> str:
    """Environment variable that can carry a full SQLAlchemy URL for a workspace."""
    suffix = "__READONLY" if read_only else ""
    return f"REPORTING_DATABASE_URL__{workspace.upper().replace('-', '_')}{suffix}"


def has_readonly_login(workspace: str, config: dict) -> bool:
    """
    Check if a workspace declares a separate login for ad-hoc queries, either
    in its config or through the __READONLY URL override.
    """
    return bool(
        os.getenv(url_override_env(workspace, read_only=True))
        or config.get("readonly_url")
        or config.get("readonly_user")
    )
