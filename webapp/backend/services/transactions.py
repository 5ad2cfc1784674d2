"""
Transaction coordinator for table mutations.

PREVIEW runs the statement and always rolls back, so the caller learns how
many rows would change without any durable effect. COMMIT runs the statement
in its own, separate transaction and commits on success.

Preview and commit never share a transaction: another writer can change the
table between the two calls, so the committed rowsAffected may differ from
the previewed one.
"""
import logging
from dataclasses import dataclass
from typing import Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncTransaction

from constants import ExecutionMode
from errors import KeyNotFound, RollbackFailure, TransactionFailure
from services.query_builder import BuiltStatement

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class MutationOutcome:
    rows_affected: int


async def rollback_quietly(transaction: AsyncTransaction, context: str) -> None:
    """
    Best-effort rollback; a failure here is logged, never raised.

    Driver and socket errors are caught as well as SQLAlchemy's, so the
    caller's outcome or original error is what reaches the client.
    """
    try:
        await transaction.rollback()
    except Exception as e:
        logger.error(f"{RollbackFailure.default_message} {context}: {e}", exc_info=True)


async def run_mutation(
    engine: AsyncEngine,
    statement: BuiltStatement,
    mode: ExecutionMode,
    precheck: Optional[BuiltStatement] = None,
    context: str = "",
) -> MutationOutcome:
    """
    Execute one mutation inside its own transaction.

    Args:
        precheck: optional COUNT statement run first in the same transaction;
                  zero matches aborts with KeyNotFound
        context: short description used in log lines

    Raises:
        KeyNotFound: precheck matched no rows
        TransactionFailure: execution or commit failed (driver detail is logged)
    """
    async with engine.connect() as connection:
        transaction = await connection.begin()
        try:
            if precheck is not None:
                result = await connection.execute(precheck.clause, precheck.params)
                if not result.scalar():
                    raise KeyNotFound()

            result = await connection.execute(statement.clause, statement.params)
            # Some drivers report -1 when the count is unknown
            rows_affected = max(result.rowcount or 0, 0)

            if mode is ExecutionMode.COMMIT:
                await transaction.commit()
        except KeyNotFound:
            await rollback_quietly(transaction, context)
            raise
        except SQLAlchemyError as e:
            logger.error(f"{mode.value} failed {context}: {e}", exc_info=True)
            await rollback_quietly(transaction, context)
            raise TransactionFailure() from e

        if mode is ExecutionMode.PREVIEW:
            await rollback_quietly(transaction, context)

    logger.info("%s %s rowsAffected=%d", mode.value, context, rows_affected)
    return MutationOutcome(rows_affected=rows_affected)
