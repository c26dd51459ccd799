from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Optional


class TransactionState(Enum):
    """Transaction state machine states"""

    IDLE = "idle"
    IN_TRANSACTION = "in_transaction"
    COMMITTED = "committed"
    ROLLED_BACK = "rolled_back"
    FAILED = "failed"
    IN_SAVEPOINT = "in_savepoint"
    RELEASED = "released"
    ROLLED_BACK_TO_SAVEPOINT = "rolled_back_to_savepoint"


@dataclass(frozen=True)
class Outcome:
    """What came of running a unit of work.

    Either `value` holds the unit of work's return value, or `error` holds
    the failure of the last attempt.
    """

    value: Any = None
    error: Optional[BaseException] = None
    attempts: int = 0
    state: TransactionState = TransactionState.IDLE

    @property
    def ok(self) -> bool:
        return self.error is None
