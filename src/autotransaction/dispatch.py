from __future__ import annotations

import logging
from typing import Any, Optional

from autotransaction.config import ExecutionConfig, TransactionSettings
from autotransaction.exception import NoSuchMethod, TransactionError
from autotransaction.registry import ConnectionRegistry, TransactionalRegistry
from autotransaction.transaction.executor import (
    TransactionExecutor,
    UnitOfWork,
    invoke,
)

logger = logging.getLogger(__name__)


class TransactionDispatcher:
    """Turns an explicit call or a declared method into an executor run.

    Failures of the outermost level are raised as `TransactionError` or
    swallowed, depending on `throw_on_failure`. Failures at a nested level
    propagate unchanged to the enclosing unit of work.
    """

    def __init__(
        self,
        registry: Optional[ConnectionRegistry] = None,
        defaults: Optional[TransactionSettings] = None,
        executor: Optional[TransactionExecutor] = None,
    ):
        self.registry = registry or ConnectionRegistry()
        self.defaults = defaults or TransactionSettings()
        self.executor = executor or TransactionExecutor()

    async def run_in_transaction(
        self,
        unit_of_work: UnitOfWork,
        connection: Optional[str] = None,
        attempts: Optional[int] = None,
        throw_on_failure: Optional[bool] = None,
    ) -> Any:
        """Run a unit of work in a transaction

        Args:
            unit_of_work (UnitOfWork): Zero argument callable, sync or async
            connection (str, optional): Connection name. Defaults to the
                configured default connection.
            attempts (int, optional): Maximum attempts. Defaults to the
                configured default.
            throw_on_failure (bool, optional): Whether to raise after the
                last failed attempt. Defaults to the configured default.

        Raises:
            TransactionError: If every attempt failed and `throw_on_failure`
            UnknownConnection: If the connection is not registered

        Returns:
            Any: The unit of work's result, or `None` if it failed and
                `throw_on_failure` is off
        """
        config = ExecutionConfig.build(
            self.defaults,
            connection=connection,
            attempts=attempts,
            throw_on_failure=throw_on_failure,
        )
        return await self.run(unit_of_work, config)

    async def run(self, unit_of_work: UnitOfWork, config: ExecutionConfig):
        connection = self.registry.resolve(config.connection)
        outcome = await self.executor.execute(
            connection, unit_of_work, config.attempts
        )
        if outcome.ok:
            return outcome.value

        if config.throw_on_failure:
            raise TransactionError(outcome.error) from outcome.error

        logger.debug(
            "Suppressed transaction failure on '%s'",
            connection.name,
            exc_info=outcome.error,
        )
        return None

    def config_for(
        self, receiver: object, method_name: str
    ) -> Optional[ExecutionConfig]:
        """The configuration declared with `@transactional`, if any"""
        options = TransactionalRegistry.lookup(receiver, method_name)
        if options is None:
            return None
        return ExecutionConfig.build(self.defaults, **options)

    async def execute_if_annotated(
        self, receiver: object, method_name: str, *args, **kwargs
    ) -> Any:
        """Call a method on `receiver`, in a transaction if it was declared
        `@transactional`, directly otherwise

        Raises:
            NoSuchMethod: If the receiver has no such method
        """
        method = getattr(receiver, method_name, None)
        if method is None or not callable(method):
            raise NoSuchMethod(receiver, method_name)

        config = self.config_for(receiver, method_name)
        if config is None:
            return await invoke(lambda: method(*args, **kwargs))

        return await self.run(lambda: method(*args, **kwargs), config)

    def bind(self, receiver: object) -> BoundDispatcher:
        return BoundDispatcher(self, receiver)


class BoundDispatcher:
    """A dispatcher tied to one receiver, for objects that hold their
    transaction handling as an attribute"""

    def __init__(self, dispatcher: TransactionDispatcher, receiver: object):
        self.dispatcher = dispatcher
        self.receiver = receiver

    async def call(self, method_name: str, *args, **kwargs) -> Any:
        return await self.dispatcher.execute_if_annotated(
            self.receiver, method_name, *args, **kwargs
        )

    async def run(self, unit_of_work: UnitOfWork, **options) -> Any:
        return await self.dispatcher.run_in_transaction(
            unit_of_work, **options
        )
