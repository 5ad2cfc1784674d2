"""
Shared constants for the backend.

Centralizes execution modes, paging limits and the ad-hoc query blocklist.
"""
from enum import Enum


class ExecutionMode(str, Enum):
    """
    How a mutation's transaction ends.

    Using str + Enum allows direct comparison with string values and JSON serialization.
    """
    # Run, report rowsAffected, always roll back
    PREVIEW = 'preview'
    # Run, commit on success, roll back on failure
    COMMIT = 'commit'


# Paging
DEFAULT_PAGE_SIZE = 50
MAX_PAGE_SIZE = 200

# Keywords rejected anywhere in an ad-hoc query (case-insensitive substring match)
FORBIDDEN_QUERY_KEYWORDS = [
    'drop',
    'delete',
    'insert',
    'update',
    'alter',
    'create',
    'truncate',
    'exec',
    'execute',
]

# Header that may carry the ad-hoc query passcode instead of the body
PASSCODE_HEADER = 'x-reporting-passcode'
