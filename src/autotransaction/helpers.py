from typing import Any, Optional

from autotransaction.registry import ConnectionRegistry
from autotransaction.transaction.executor import (
    TransactionExecutor,
    UnitOfWork,
)

_executor = TransactionExecutor()


async def run_transaction(
    unit_of_work: UnitOfWork,
    attempts: int = 1,
    connection: Optional[str] = None,
) -> Any:
    """Run a unit of work in a transaction and return its result.

    Unlike `TransactionDispatcher.run_in_transaction`, the failure of the
    last attempt is raised as is.

    Example:

    ```python
    from autotransaction import run_transaction

    async def place_order(conn):
        await conn.execute("INSERT INTO orders (total) VALUES ($total)",
                           params={"total": 10})

    await run_transaction(lambda: place_order(conn), attempts=3)
    ```

    Args:
        unit_of_work (UnitOfWork): Zero argument callable, sync or async
        attempts (int, optional): Maximum attempts. Defaults to `1`.
        connection (str, optional): Connection name. Defaults to the
            default connection.
    """
    resolved = ConnectionRegistry().resolve(connection)
    outcome = await _executor.execute(resolved, unit_of_work, attempts)
    if not outcome.ok:
        raise outcome.error  # type: ignore
    return outcome.value


async def auto_transaction(unit_of_work: UnitOfWork, **options) -> Any:
    """`run_transaction` with its options passed as keywords; unknown options
    are ignored"""
    return await run_transaction(
        unit_of_work,
        attempts=options.get("attempts", 1),
        connection=options.get("connection"),
    )
