from __future__ import annotations

from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Optional

from autotransaction.base.interface import BaseInterface, QueryValues
from autotransaction.exception import AutoTransactionError

try:
    from asyncmy import Connection, create_pool
    from asyncmy.cursors import DictCursor

    MYSQL_ENABLED = True
except ModuleNotFoundError:
    MYSQL_ENABLED = False
    Connection = type("Connection", (), {})  # type: ignore


class MysqlPool(BaseInterface):
    """Interface for connecting to a MySQL database"""

    scheme = "mysql"
    default_port = 3306

    BEGIN = "START TRANSACTION"

    def _setup_pool(self):
        if not MYSQL_ENABLED:
            raise AutoTransactionError(
                "MySQL driver not found. Try reinstalling: "
                "pip install auto-transaction[mysql]"
            )
        self._pool = None

    async def open(self):
        """Open connections to the pool"""
        self._pool = await create_pool(
            user=self.user,
            password=self.password,
            host=self.host,
            port=self.port,
            db=self.db,
            minsize=self.min_size,
            maxsize=self.max_size or 10,
            autocommit=True,
        )
        self._opened = True

    async def close(self):
        """Close connections to the pool"""
        if self._pool is not None:
            self._pool.close()
            await self._pool.wait_closed()
        self._opened = False

    @asynccontextmanager
    async def connection(
        self, timeout: Optional[float] = None
    ) -> AsyncIterator[Connection]:
        """Obtain a connection to the database

        Args:
            timeout (float, optional): _Not implemented_. Defaults to `None`.

        Yields:
            Connection: A database connection
        """
        async with self._pool.acquire() as conn:
            yield conn

    async def run(
        self,
        conn: Any,
        query: str,
        values: QueryValues = None,
        as_list: bool = True,
        no_result: bool = False,
    ):
        async with conn.cursor(cursor=DictCursor) as cursor:
            await cursor.execute(query, values)
            if no_result:
                return None
            if as_list:
                return await cursor.fetchall()
            return await cursor.fetchone()
