from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Optional

from autotransaction.base.interface import BaseInterface, QueryValues
from autotransaction.exception import AutoTransactionError

try:
    from psycopg import AsyncConnection
    from psycopg.rows import dict_row
    from psycopg_pool import AsyncConnectionPool

    POSTGRES_ENABLED = True
except ModuleNotFoundError:
    POSTGRES_ENABLED = False
    AsyncConnection = type("Connection", (), {})  # type: ignore
    AsyncConnectionPool = type("Connection", (), {})  # type: ignore


class PostgresPool(BaseInterface):
    """Interface for connecting to a Postgres database

    Connections are handed out in autocommit mode so that the explicit
    `BEGIN` issued by the transaction layer is the only transaction
    boundary.
    """

    scheme = "postgres"
    aliases = ("postgresql",)
    default_port = 5432

    def _setup_pool(self):
        if not POSTGRES_ENABLED:
            raise AutoTransactionError(
                "Postgres driver not found. Try reinstalling: "
                "pip install auto-transaction[postgres]"
            )
        self._pool = AsyncConnectionPool(
            self.full_dsn,
            min_size=self.min_size,
            max_size=self.max_size,
            kwargs={"autocommit": True},
            open=False,
        )

    async def open(self):
        """Open connections to the pool"""
        await self._pool.open()
        self._opened = True

    async def close(self):
        """Close connections to the pool"""
        await self._pool.close()
        self._opened = False

    @asynccontextmanager
    async def connection(
        self, timeout: Optional[float] = None
    ) -> AsyncIterator[AsyncConnection]:
        """Obtain a connection to the database

        Args:
            timeout (float, optional): Time before an error is raised on
                failure to connect. Defaults to `None`.

        Yields:
            AsyncConnection: A database connection
        """
        async with self._pool.connection(timeout=timeout) as conn:
            yield conn

    async def run(
        self,
        conn: Any,
        query: str,
        values: QueryValues = None,
        as_list: bool = True,
        no_result: bool = False,
    ):
        cursor = await conn.execute(query, values)
        if no_result:
            return None
        cursor.row_factory = dict_row
        if as_list:
            return await cursor.fetchall()
        return await cursor.fetchone()
