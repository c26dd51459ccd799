from __future__ import annotations

import logging
from inspect import isawaitable
from typing import TYPE_CHECKING, Any, Awaitable, Callable, Union

from autotransaction.exception import TransactionProtocolError

from .interfaces import Outcome, TransactionState

if TYPE_CHECKING:
    from autotransaction.connection import Connection

logger = logging.getLogger(__name__)

UnitOfWork = Callable[[], Union[Any, Awaitable[Any]]]


async def invoke(unit_of_work: UnitOfWork) -> Any:
    result = unit_of_work()
    if isawaitable(result):
        result = await result
    return result


class TransactionExecutor:
    """
    Runs units of work inside transactions.

    The outermost call on a connection issues `BEGIN` and `COMMIT` or
    `ROLLBACK`, and retries the whole unit of work while attempts remain.
    Calls made while a transaction is already open on the connection use
    savepoints instead and never retry: their failures propagate unchanged
    so the enclosing level decides what happens.

    Every failure is retried, whatever its kind, up to `max_attempts`.

    The executor keeps no state of its own; a single instance can be
    shared by any number of callers.
    """

    async def execute(
        self,
        connection: Connection,
        unit_of_work: UnitOfWork,
        max_attempts: int = 1,
    ) -> Outcome:
        """Run `unit_of_work` in a transaction on `connection`

        Args:
            connection (Connection): The connection to run on
            unit_of_work (UnitOfWork): Zero argument callable. Its result is
                awaited when awaitable.
            max_attempts (int, optional): How many times the outermost level
                may run the unit of work. Values lower than one are treated
                as one. Defaults to `1`.

        Raises:
            Exception: At a nested level, whatever the unit of work raised

        Returns:
            Outcome: The result, or the failure of the last attempt
        """
        if connection.in_transaction():
            return await self._execute_nested(connection, unit_of_work)

        max_attempts = max(1, max_attempts)
        error: BaseException
        for attempt in range(1, max_attempts + 1):
            try:
                value = await self._attempt(connection, unit_of_work)
            except Exception as e:
                error = e
                if attempt < max_attempts:
                    logger.warning(
                        "Attempt %d/%d on '%s' failed, retrying: %s",
                        attempt,
                        max_attempts,
                        connection.name,
                        e,
                    )
                continue

            logger.info(
                "Transaction on '%s' committed after %d attempt(s)",
                connection.name,
                attempt,
            )
            return Outcome(
                value=value,
                attempts=attempt,
                state=TransactionState.COMMITTED,
            )

        logger.info(
            "Transaction on '%s' failed after %d attempt(s): %s",
            connection.name,
            max_attempts,
            error,
        )
        return Outcome(
            error=error,
            attempts=max_attempts,
            state=TransactionState.FAILED,
        )

    async def _attempt(
        self, connection: Connection, unit_of_work: UnitOfWork
    ) -> Any:
        await connection.begin()
        try:
            value = await invoke(unit_of_work)
        except BaseException:
            await self._rollback(connection)
            raise

        try:
            await connection.commit()
        except TransactionProtocolError:
            await self._rollback(connection)
            raise
        return value

    async def _execute_nested(
        self, connection: Connection, unit_of_work: UnitOfWork
    ) -> Outcome:
        savepoint = await connection.create_savepoint()
        try:
            value = await invoke(unit_of_work)
        except BaseException:
            try:
                await savepoint.rollback()
            except Exception as e:
                logger.critical(
                    "CRITICAL: Rollback to savepoint %s failed on '%s': %s",
                    savepoint.name,
                    connection.name,
                    e,
                )
            raise

        await savepoint.release()
        return Outcome(
            value=value,
            attempts=1,
            state=TransactionState.RELEASED,
        )

    @staticmethod
    async def _rollback(connection: Connection) -> None:
        if not connection.in_transaction():
            return
        try:
            await connection.rollback()
        except Exception as e:
            logger.critical(
                "CRITICAL: Rollback failed on '%s': %s", connection.name, e
            )
