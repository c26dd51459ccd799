from __future__ import annotations

from contextlib import AsyncExitStack
from contextvars import Token
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, List, Optional
from uuid import uuid4

from .interfaces import TransactionState

if TYPE_CHECKING:
    from .savepoint import Savepoint


def _transaction_id() -> str:
    return f"txn_{uuid4().hex[:8]}"


@dataclass
class TransactionContext:
    """State of one open transaction on one connection.

    `depth` is always one more than the number of open savepoints while the
    transaction is active, and zero once it has been finalized.
    """

    handle: Any
    stack: AsyncExitStack
    transaction_id: str = field(default_factory=_transaction_id)
    depth: int = 1
    savepoints: List[Savepoint] = field(default_factory=list)
    state: TransactionState = TransactionState.IN_TRANSACTION
    token: Optional[Token] = None

    @property
    def is_active(self) -> bool:
        return self.state is TransactionState.IN_TRANSACTION

    def next_savepoint_name(self) -> str:
        return f"sp_{self.depth}"
