from __future__ import annotations

import logging
from fnmatch import fnmatch
from typing import Any, Dict, List, Optional, Sequence

from autotransaction.registry import ConnectionRegistry
from autotransaction.transaction.executor import TransactionExecutor

logger = logging.getLogger(__name__)

SAFE_METHODS = frozenset({"GET", "HEAD", "OPTIONS", "TRACE"})


class _RollbackResponse(Exception):
    def __init__(self, status: Optional[int]):
        self.status = status
        super().__init__(f"Response status {status} is not successful")


class TransactionMiddleware:
    """ASGI middleware running each state-changing request in a transaction.

    `GET`, `HEAD`, `OPTIONS` and `TRACE` requests pass straight through.
    For the others the response is held back until the transaction is
    settled: a 2xx status commits, anything else rolls back. If the
    application raises, the transaction is rolled back and the exception
    propagates.

    Example:

    ```python
    app.add_middleware(TransactionMiddleware, connection="primary")
    ```
    """

    def __init__(
        self,
        app,
        connection: Optional[str] = None,
        executor: Optional[TransactionExecutor] = None,
        routes: Sequence[str] = (),
        registry: Optional[ConnectionRegistry] = None,
    ):
        self.app = app
        self.connection = connection
        self.executor = executor or TransactionExecutor()
        self.routes = tuple(route.lstrip("/") for route in routes)
        self.registry = registry or ConnectionRegistry()

    async def __call__(self, scope, receive, send):
        if not self.applies_to(scope):
            await self.app(scope, receive, send)
            return

        connection = self.registry.resolve(self.connection)
        messages: List[Dict[str, Any]] = []

        async def buffer(message):
            messages.append(message)

        async def handle():
            await self.app(scope, receive, buffer)
            status = self._status(messages)
            if not self.should_commit(status):
                raise _RollbackResponse(status)

        outcome = await self.executor.execute(connection, handle)
        if not outcome.ok:
            if not isinstance(outcome.error, _RollbackResponse):
                raise outcome.error  # type: ignore
            logger.debug(
                "Rolled back %s %s: %s",
                scope["method"],
                scope["path"],
                outcome.error,
            )

        for message in messages:
            await send(message)

    def applies_to(self, scope) -> bool:
        if scope["type"] != "http":
            return False
        if scope["method"].upper() in SAFE_METHODS:
            return False
        if not self.routes:
            return True
        path = scope["path"].lstrip("/")
        return any(fnmatch(path, route) for route in self.routes)

    def should_commit(self, status: Optional[int]) -> bool:
        return status is not None and 200 <= status < 300

    @staticmethod
    def _status(messages: List[Dict[str, Any]]) -> Optional[int]:
        for message in messages:
            if message["type"] == "http.response.start":
                return message["status"]
        return None
