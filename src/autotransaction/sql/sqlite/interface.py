from __future__ import annotations

from contextlib import asynccontextmanager
from sqlite3 import Cursor
from typing import Any, Dict, Optional, Tuple

from autotransaction.base.interface import BaseInterface, QueryValues
from autotransaction.exception import AutoTransactionError

try:
    import aiosqlite

    AIOSQLITE_ENABLED = True
except ModuleNotFoundError:
    AIOSQLITE_ENABLED = False


class SQLitePool(BaseInterface):
    """Interface for connecting to a SQLite database

    A single connection is shared. It is opened with `isolation_level=None`
    so the driver never starts transactions implicitly.
    """

    scheme = "sqlite"

    POSITIONAL_SUB = "?"
    KEYWORD_SUB = ":{name}"

    def __init__(self, db_path: str):
        self._db_path = db_path
        self._handle: Optional[aiosqlite.Connection] = None
        super().__init__()

    def _setup_pool(self):
        if not AIOSQLITE_ENABLED:
            raise AutoTransactionError(
                "SQLite driver not found. Try reinstalling: "
                "pip install auto-transaction[sqlite]"
            )

    @property
    def dsn(self) -> str:
        return self._db_path

    @property
    def full_dsn(self) -> str:
        return self._db_path

    async def open(self):
        """Open the database file"""
        self._handle = await aiosqlite.connect(
            self._db_path, isolation_level=None
        )
        self._handle.row_factory = self._dict_factory
        self._opened = True

    async def close(self):
        """Close the database file"""
        if self._handle is not None:
            await self._handle.close()
            self._handle = None
        self._opened = False

    @asynccontextmanager
    async def connection(self, timeout: Optional[float] = None):
        """Obtain a connection to the database

        Args:
            timeout (float, optional): _Not implemented_. Defaults to `None`.

        Yields:
            aiosqlite.Connection: The shared database connection
        """
        if self._handle is None:
            await self.open()
        yield self._handle

    async def run(
        self,
        conn: Any,
        query: str,
        values: QueryValues = None,
        as_list: bool = True,
        no_result: bool = False,
    ):
        cursor = await conn.execute(query, values)
        try:
            if no_result:
                return None
            if as_list:
                return await cursor.fetchall()
            return await cursor.fetchone()
        finally:
            await cursor.close()

    @staticmethod
    def _dict_factory(cursor: Cursor, row: Tuple[Any, ...]) -> Dict[str, Any]:
        return {val[0]: row[idx] for idx, val in enumerate(cursor.description)}
