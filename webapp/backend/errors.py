"""
Error taxonomy for the reporting API.

Every error carries the HTTP status and a user-safe message. Driver and
catalog detail is logged server-side and never placed in `message`.
"""
from fastapi import status


class ReportingError(Exception):
    """Base exception for reporting errors."""

    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_message = "Internal server error."

    def __init__(self, message: str = None):
        self.message = message or self.default_message
        super().__init__(self.message)


# ============================================================================
# Validation (raised before any database call)
# ============================================================================

class UnsafeIdentifier(ReportingError):
    status_code = status.HTTP_400_BAD_REQUEST

    def __init__(self, label: str):
        self.label = label
        super().__init__(f"Unsafe {label} identifier provided.")


class MissingRequiredField(ReportingError):
    status_code = status.HTTP_400_BAD_REQUEST
    default_message = "A required field is missing."


class InvalidKeyColumn(ReportingError):
    status_code = status.HTTP_400_BAD_REQUEST
    default_message = "keyColumn is not a valid column."


class InvalidOrderColumn(ReportingError):
    status_code = status.HTTP_400_BAD_REQUEST
    default_message = "orderBy is not a valid column."


class NoValidColumns(ReportingError):
    status_code = status.HTTP_400_BAD_REQUEST
    default_message = "No valid column values provided."


class NoValidUpdates(ReportingError):
    status_code = status.HTTP_400_BAD_REQUEST
    default_message = "No valid updates provided."


class UnknownColumns(ReportingError):
    status_code = status.HTTP_400_BAD_REQUEST

    def __init__(self, columns: list[str]):
        self.columns = columns
        super().__init__(f"Unknown columns: {', '.join(columns)}")


class KeyNotFound(ReportingError):
    status_code = status.HTTP_404_NOT_FOUND
    default_message = "No row matches the supplied key."


# ============================================================================
# Ad-hoc query gate
# ============================================================================

class GateUnconfigured(ReportingError):
    status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    default_message = "Query execution is not configured on this server."


class InvalidPasscode(ReportingError):
    status_code = status.HTTP_401_UNAUTHORIZED
    default_message = "Invalid passcode."


class NonSelectQuery(ReportingError):
    status_code = status.HTTP_400_BAD_REQUEST
    default_message = "Only SELECT queries are allowed."


class ForbiddenKeyword(ReportingError):
    status_code = status.HTTP_400_BAD_REQUEST

    def __init__(self, keyword: str):
        self.keyword = keyword
        super().__init__(f"Query contains a forbidden keyword: {keyword}")


# ============================================================================
# Database
# ============================================================================

class SchemaLoadError(ReportingError):
    default_message = "Failed to load columns."


class RowsLoadError(ReportingError):
    default_message = "Failed to load rows."


class TransactionFailure(ReportingError):
    default_message = "Failed to execute the operation."


class RollbackFailure(ReportingError):
    """Logged when a rollback fails; never surfaced as the primary error."""

    default_message = "Rollback failed."


class QueryExecutionError(ReportingError):
    default_message = "Failed to execute query."


class UnknownWorkspace(ReportingError):
    status_code = status.HTTP_404_NOT_FOUND

    def __init__(self, workspace: str):
        self.workspace = workspace
        super().__init__(f'Unknown reporting workspace "{workspace}".')


class WorkspaceUnavailable(ReportingError):
    status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    default_message = "Reporting database is unavailable."
