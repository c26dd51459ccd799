from typing import Optional

from autotransaction.exception import AutoTransactionError
from autotransaction.registry import TransactionalRegistry


def transactional(
    connection: Optional[str] = None,
    attempts: Optional[int] = None,
    throw_on_failure: Optional[bool] = None,
):
    """Declare that a method should run inside a transaction when it is
    dispatched through a `TransactionDispatcher`.

    The method itself is returned unchanged; calling it directly runs it
    without a transaction. Options left as `None` fall back to the process
    defaults at dispatch time.

    Example:

    ```python
    from autotransaction import transactional

    class AccountService:
        def __init__(self, dispatcher):
            self.transactions = dispatcher.bind(self)

        @transactional(attempts=3)
        async def transfer(self, source: int, target: int, amount: int):
            ...

    await service.transactions.call("transfer", 1, 2, 100)
    ```

    Args:
        connection (str, optional): Connection name. Defaults to `None`.
        attempts (int, optional): Maximum attempts. Defaults to `None`.
        throw_on_failure (bool, optional): Raise `TransactionError` after
            the last failed attempt instead of returning `None`.
            Defaults to `None`.
    """

    options = {
        "connection": connection,
        "attempts": attempts,
        "throw_on_failure": throw_on_failure,
    }

    def decorator(f):
        owner, _, method_name = f.__qualname__.rpartition(".")
        if not owner or owner.endswith("<locals>"):
            raise AutoTransactionError(
                f"@transactional can only be applied to methods, not {f!r}. "
                "Use autotransaction.run_transaction() for plain functions."
            )
        TransactionalRegistry.add(
            f.__module__, owner, method_name, dict(options)
        )
        return f

    return decorator
