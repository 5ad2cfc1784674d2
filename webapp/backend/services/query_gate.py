"""
Ad-hoc query gate.

A caller-supplied SELECT is run only after a passcode check and a
conservative shape filter. The filter is a lower-cased substring match on a
keyword blocklist: it rejects benign names such as "updated_at" and can be
evaded by obfuscation, so it is not a security boundary. Point the
workspace's read-only login at the gate for that.
"""
import logging
import os
from typing import Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncEngine

from constants import FORBIDDEN_QUERY_KEYWORDS
from errors import (
    ForbiddenKeyword,
    GateUnconfigured,
    InvalidPasscode,
    MissingRequiredField,
    NonSelectQuery,
    QueryExecutionError,
)
from utils.serializers import serialize_row

logger = logging.getLogger(__name__)


def check_query_shape(query: Optional[str]) -> str:
    """
    Return the query if it looks like a single read statement.

    Raises:
        MissingRequiredField: query is missing or blank
        NonSelectQuery: query does not start with "select"
        ForbiddenKeyword: a blocklisted keyword appears anywhere in the query
    """
    if query is None or not query.strip():
        raise MissingRequiredField("query is required.")

    normalized = query.strip().lower()
    if not normalized.startswith("select"):
        raise NonSelectQuery()

    for keyword in FORBIDDEN_QUERY_KEYWORDS:
        if keyword in normalized:
            raise ForbiddenKeyword(keyword)

    return query


class QueryGate:
    """Per-deployment passcode check in front of the ad-hoc query path."""

    def __init__(self, passcode: Optional[str]):
        self._passcode = passcode or None

    @classmethod
    def from_env(cls) -> "QueryGate":
        return cls(os.getenv("REPORTING_QUERY_PASSCODE"))

    @property
    def configured(self) -> bool:
        return self._passcode is not None

    def authorize(self, query: Optional[str], supplied_passcode: Optional[str]) -> str:
        """
        Check gate configuration, query shape and passcode, in that order.

        A statement that can never run is rejected with 400 whatever the
        passcode. Plain equality is used for the passcode comparison.
        """
        if not self.configured:
            raise GateUnconfigured()
        query = check_query_shape(query)
        if supplied_passcode != self._passcode:
            raise InvalidPasscode()
        return query


async def execute_read_query(engine: AsyncEngine, query: str) -> list[dict]:
    """
    Run an authorized query as-is and return every row.

    The statement goes to the driver without bind-parameter parsing and the
    connection's transaction is never committed.
    """
    try:
        async with engine.connect() as connection:
            result = await connection.exec_driver_sql(query)
            if not result.returns_rows:
                return []
            return [serialize_row(dict(row._mapping)) for row in result]
    except SQLAlchemyError as e:
        logger.warning(f"Ad-hoc query failed: {str(e)[:200]}")
        raise QueryExecutionError() from e
