from __future__ import annotations

from logging import getLogger
from typing import Mapping, Optional, Union

from autotransaction.autotransaction import AutoTransaction
from autotransaction.base.interface import BaseInterface
from autotransaction.config import TransactionSettings
from autotransaction.exception import AutoTransactionError
from autotransaction.extension.middleware import TransactionMiddleware

logger = getLogger("quart.app")
try:
    from quart import Quart

    QUART_INSTALLED = True
except ModuleNotFoundError:
    QUART_INSTALLED = False
    Quart = type("Quart", (), {})  # type: ignore


class QuartTransactionExtension:
    def __init__(
        self,
        *,
        dsn: str = "",
        connections: Optional[Mapping[str, Union[str, BaseInterface]]] = None,
        settings: Optional[TransactionSettings] = None,
        connection: Optional[str] = None,
        app: Optional[Quart] = None,
    ):
        if not QUART_INSTALLED:
            raise AutoTransactionError(
                "Could not locate Quart. It must be installed to use "
                "QuartTransactionExtension. Try: pip install quart"
            )
        self.auto = AutoTransaction(
            dsn=dsn, connections=connections, settings=settings
        )
        self.connection = connection
        if app is not None:
            self.init_app(app)

    def init_app(self, app: Quart) -> None:
        auto = self.auto

        @app.while_serving
        async def lifespan():
            for connection in auto.registry:
                logger.info(f"Opening {connection}")
            await auto.connect()

            yield

            await auto.disconnect()

        app.asgi_app = TransactionMiddleware(  # type: ignore
            app.asgi_app,
            connection=self.connection,
            executor=auto.executor,
            routes=auto.settings.routes,
            registry=auto.registry,
        )
