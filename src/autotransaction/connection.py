from __future__ import annotations

import logging
from contextlib import AsyncExitStack
from contextvars import ContextVar
from typing import Any, Dict, List, Optional, Sequence

from autotransaction.base.interface import BaseInterface
from autotransaction.convert import convert_sql_params
from autotransaction.exception import TransactionProtocolError
from autotransaction.transaction.context import TransactionContext
from autotransaction.transaction.interfaces import TransactionState
from autotransaction.transaction.savepoint import Savepoint

logger = logging.getLogger(__name__)


class Connection:
    """A named, logical handle to a database.

    A physical connection is taken from the interface when a transaction
    begins and is held until it is committed or rolled back. The open
    transaction is tracked per asyncio context, so concurrent tasks using
    the same `Connection` each get their own transaction.

    Statements issued through `execute`, `fetch_one` and `fetch_all` run
    inside the open transaction when there is one, and in autocommit mode
    otherwise. Queries use `$name` or `$1` placeholders.
    """

    def __init__(self, name: str, interface: BaseInterface):
        self.name = name
        self.interface = interface
        self._context: ContextVar[Optional[TransactionContext]] = ContextVar(
            f"transaction[{name}]", default=None
        )

    def __repr__(self) -> str:
        return f"<Connection '{self.name}' {self.interface}>"

    @property
    def context(self) -> Optional[TransactionContext]:
        return self._context.get()

    @property
    def depth(self) -> int:
        context = self.context
        return context.depth if context else 0

    def in_transaction(self) -> bool:
        return self.depth > 0

    async def begin(self) -> TransactionContext:
        """Acquire a physical connection and issue `BEGIN` on it"""
        if self.in_transaction():
            raise TransactionProtocolError(
                f"Connection '{self.name}' already has an open transaction"
            )

        stack = AsyncExitStack()
        try:
            await self.interface.ensure_open()
            handle = await stack.enter_async_context(
                self.interface.connection()
            )
            await self.interface.run(
                handle, self.interface.BEGIN, no_result=True
            )
        except Exception as e:
            await stack.aclose()
            raise TransactionProtocolError(
                f"Failed to begin transaction on '{self.name}': {e}"
            ) from e

        context = TransactionContext(handle=handle, stack=stack)
        context.token = self._context.set(context)
        logger.debug(
            "Transaction %s started on '%s'",
            context.transaction_id,
            self.name,
        )
        return context

    async def commit(self) -> None:
        """Issue `COMMIT` and release the physical connection.

        On failure the transaction stays open so that it can still be
        rolled back.
        """
        context = self._require_context()
        if context.savepoints:
            raise TransactionProtocolError(
                f"Cannot commit '{self.name}' with "
                f"{len(context.savepoints)} open savepoint(s)"
            )
        try:
            await self._run_control(context, self.interface.COMMIT)
        except Exception as e:
            raise TransactionProtocolError(
                f"Failed to commit transaction {context.transaction_id}: {e}"
            ) from e

        context.state = TransactionState.COMMITTED
        await self._finalize(context)
        logger.debug("Transaction %s committed", context.transaction_id)

    async def rollback(self) -> None:
        """Issue `ROLLBACK` and release the physical connection"""
        context = self._require_context()
        try:
            await self._run_control(context, self.interface.ROLLBACK)
        except Exception as e:
            raise TransactionProtocolError(
                f"Failed to rollback transaction "
                f"{context.transaction_id}: {e}"
            ) from e
        finally:
            context.state = TransactionState.ROLLED_BACK
            await self._finalize(context)
        logger.debug("Transaction %s rolled back", context.transaction_id)

    async def create_savepoint(self, name: Optional[str] = None) -> Savepoint:
        """Open a nested level. Names default to `sp_<depth>`."""
        context = self._require_context()
        name = name or context.next_savepoint_name()
        if any(savepoint.name == name for savepoint in context.savepoints):
            raise TransactionProtocolError(f"Savepoint {name} already exists")

        try:
            await self._run_control(
                context, self.interface.SAVEPOINT.format(name=name)
            )
        except Exception as e:
            raise TransactionProtocolError(
                f"Failed to create savepoint {name}: {e}"
            ) from e

        savepoint = Savepoint(name, self)
        context.savepoints.append(savepoint)
        context.depth += 1
        return savepoint

    async def release_savepoint(self, name: str) -> None:
        context = self._require_context()
        self._check_innermost(context, name)
        try:
            await self._run_control(
                context, self.interface.RELEASE_SAVEPOINT.format(name=name)
            )
        except Exception as e:
            raise TransactionProtocolError(
                f"Failed to release savepoint {name}: {e}"
            ) from e
        context.savepoints.pop()
        context.depth -= 1

    async def rollback_to_savepoint(self, name: str) -> None:
        context = self._require_context()
        self._check_innermost(context, name)
        try:
            await self._run_control(
                context,
                self.interface.ROLLBACK_TO_SAVEPOINT.format(name=name),
            )
        except Exception as e:
            raise TransactionProtocolError(
                f"Failed to rollback to savepoint {name}: {e}"
            ) from e
        finally:
            context.savepoints.pop()
            context.depth -= 1

    async def execute(
        self,
        query: str,
        posargs: Optional[Sequence[Any]] = None,
        params: Optional[Dict[str, Any]] = None,
    ) -> None:
        await self._run_sql(query, posargs, params, no_result=True)

    async def fetch_one(
        self,
        query: str,
        posargs: Optional[Sequence[Any]] = None,
        params: Optional[Dict[str, Any]] = None,
    ) -> Optional[Dict[str, Any]]:
        return await self._run_sql(query, posargs, params, as_list=False)

    async def fetch_all(
        self,
        query: str,
        posargs: Optional[Sequence[Any]] = None,
        params: Optional[Dict[str, Any]] = None,
    ) -> List[Dict[str, Any]]:
        return await self._run_sql(query, posargs, params, as_list=True)

    async def _run_sql(
        self,
        query: str,
        posargs: Optional[Sequence[Any]],
        params: Optional[Dict[str, Any]],
        as_list: bool = True,
        no_result: bool = False,
    ):
        query = convert_sql_params(query, self.interface)
        values = list(posargs) if posargs else params
        context = self.context
        if context is not None:
            return await self.interface.run(
                context.handle, query, values, as_list, no_result
            )

        await self.interface.ensure_open()
        async with self.interface.connection() as conn:
            return await self.interface.run(
                conn, query, values, as_list, no_result
            )

    async def _run_control(
        self, context: TransactionContext, statement: str
    ) -> None:
        logger.debug(
            "[%s] %s on '%s'", context.transaction_id, statement, self.name
        )
        await self.interface.run(context.handle, statement, no_result=True)

    def _require_context(self) -> TransactionContext:
        context = self.context
        if context is None or not context.is_active:
            raise TransactionProtocolError(
                f"No open transaction on connection '{self.name}'"
            )
        return context

    @staticmethod
    def _check_innermost(context: TransactionContext, name: str) -> None:
        if not context.savepoints or context.savepoints[-1].name != name:
            raise TransactionProtocolError(
                f"Savepoint {name} is not the innermost open savepoint"
            )

    async def _finalize(self, context: TransactionContext) -> None:
        context.depth = 0
        context.savepoints.clear()
        try:
            if context.token is not None:
                self._context.reset(context.token)
        except ValueError:
            # finalized from a different context than the one that began it
            self._context.set(None)
        try:
            await context.stack.aclose()
        except Exception as e:
            logger.warning(
                "Error releasing connection '%s' after %s: %s",
                self.name,
                context.transaction_id,
                e,
            )
