from importlib.metadata import version

from .autotransaction import AutoTransaction
from .base.interface import BaseInterface
from .config import ExecutionConfig, TransactionSettings
from .connection import Connection
from .decorator import transactional
from .dispatch import BoundDispatcher, TransactionDispatcher
from .exception import (
    AutoTransactionError,
    NoSuchMethod,
    TransactionError,
    TransactionProtocolError,
    UnknownConnection,
)
from .helpers import auto_transaction, run_transaction
from .registry import ConnectionRegistry
from .sql.mysql.interface import MysqlPool
from .sql.postgres.interface import PostgresPool
from .sql.sqlite.interface import SQLitePool
from .transaction import Outcome, TransactionExecutor, TransactionState

__version__ = version("auto-transaction")

__all__ = (
    "auto_transaction",
    "run_transaction",
    "transactional",
    "AutoTransaction",
    "AutoTransactionError",
    "BaseInterface",
    "BoundDispatcher",
    "Connection",
    "ConnectionRegistry",
    "ExecutionConfig",
    "MysqlPool",
    "NoSuchMethod",
    "Outcome",
    "PostgresPool",
    "SQLitePool",
    "TransactionDispatcher",
    "TransactionError",
    "TransactionExecutor",
    "TransactionProtocolError",
    "TransactionSettings",
    "TransactionState",
    "UnknownConnection",
)
