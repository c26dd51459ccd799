from __future__ import annotations

from contextlib import asynccontextmanager
from typing import Mapping, Optional, Union

from autotransaction.autotransaction import AutoTransaction
from autotransaction.base.interface import BaseInterface
from autotransaction.config import TransactionSettings
from autotransaction.exception import AutoTransactionError
from autotransaction.extension.middleware import TransactionMiddleware

try:
    from starlette.applications import Starlette

    STARLETTE_INSTALLED = True
except ModuleNotFoundError:
    STARLETTE_INSTALLED = False
    Starlette = type("Starlette", (), {})  # type: ignore


class StarletteTransactionExtension:
    def __init__(
        self,
        *,
        dsn: str = "",
        connections: Optional[Mapping[str, Union[str, BaseInterface]]] = None,
        settings: Optional[TransactionSettings] = None,
        connection: Optional[str] = None,
        app: Optional[Starlette] = None,
    ):
        if not STARLETTE_INSTALLED:
            raise AutoTransactionError(
                "Could not locate Starlette. It must be installed to use "
                "StarletteTransactionExtension. Try: pip install starlette"
            )
        self.auto = AutoTransaction(
            dsn=dsn, connections=connections, settings=settings
        )
        self.connection = connection
        if app is not None:
            self.init_app(app)

    def init_app(self, app: Starlette) -> None:
        auto = self.auto
        lifespan_context = app.router.lifespan_context

        @asynccontextmanager
        async def lifespan(app):
            await auto.connect()
            try:
                async with lifespan_context(app) as state:
                    yield state
            finally:
                await auto.disconnect()

        app.router.lifespan_context = lifespan
        app.add_middleware(
            TransactionMiddleware,
            connection=self.connection,
            executor=auto.executor,
            routes=auto.settings.routes,
            registry=auto.registry,
        )
