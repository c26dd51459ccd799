"""
Savepoint implementation for nested rollback points.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from autotransaction.exception import TransactionProtocolError

from .interfaces import TransactionState

if TYPE_CHECKING:
    from autotransaction.connection import Connection

logger = logging.getLogger(__name__)


class Savepoint:
    """
    A named rollback point inside an open transaction. Rolling back to it
    undoes the work done since it was created without aborting the
    enclosing transaction.
    """

    def __init__(self, name: str, connection: Connection):
        self.name = name
        self.connection = connection
        self.state = TransactionState.IN_SAVEPOINT

        logger.debug(
            f"Created savepoint {self.name} on connection "
            f"'{connection.name}'"
        )

    async def rollback(self) -> None:
        """Rollback to this savepoint and discard it"""
        self._check_open()
        logger.debug(f"Rolling back to savepoint {self.name}")
        try:
            await self.connection.rollback_to_savepoint(self.name)
        finally:
            self.state = TransactionState.ROLLED_BACK_TO_SAVEPOINT

    async def release(self) -> None:
        """Release this savepoint, keeping its work in the transaction"""
        self._check_open()
        logger.debug(f"Releasing savepoint {self.name}")
        await self.connection.release_savepoint(self.name)
        self.state = TransactionState.RELEASED

    def _check_open(self) -> None:
        if self.state is not TransactionState.IN_SAVEPOINT:
            raise TransactionProtocolError(
                f"Savepoint {self.name} already {self.state.value}"
            )

    @property
    def is_released(self) -> bool:
        return self.state is TransactionState.RELEASED

    def __str__(self) -> str:
        return f"<Savepoint {self.name} ({self.state.value})>"
