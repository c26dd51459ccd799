"""
Transaction execution: BEGIN/COMMIT/ROLLBACK, retries, and nesting through
savepoints.
"""

from .context import TransactionContext
from .executor import TransactionExecutor, UnitOfWork
from .interfaces import Outcome, TransactionState
from .savepoint import Savepoint

__all__ = [
    "TransactionExecutor",
    "TransactionContext",
    "TransactionState",
    "Outcome",
    "Savepoint",
    "UnitOfWork",
]
