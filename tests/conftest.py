from collections import defaultdict
from contextlib import asynccontextmanager
from typing import Any, DefaultDict, List, Optional

import pytest

from autotransaction.base.interface import BaseInterface
from autotransaction.config import TransactionSettings
from autotransaction.dispatch import TransactionDispatcher
from autotransaction.registry import ConnectionRegistry, TransactionalRegistry


class RecordingHandle:
    def __init__(self, number: int):
        self.number = number


class RecordingInterface(BaseInterface):
    """Records every statement instead of talking to a database"""

    scheme = "recording"

    def __init__(self):
        self.statements: List[str] = []
        self.values: List[Any] = []
        self.handles: List[RecordingHandle] = []
        self.failures: DefaultDict[str, List[BaseException]] = defaultdict(
            list
        )
        self.acquired = 0
        self.released = 0
        self.rows: Any = []
        super().__init__()

    def fail(self, statement: str, *errors: BaseException) -> None:
        self.failures[statement].extend(errors)

    def _setup_pool(self): ...

    async def open(self):
        self._opened = True

    async def close(self):
        self._opened = False

    @asynccontextmanager
    async def connection(self, timeout: Optional[float] = None):
        self.acquired += 1
        handle = RecordingHandle(self.acquired)
        try:
            yield handle
        finally:
            self.released += 1

    async def run(
        self, conn, query, values=None, as_list=True, no_result=False
    ):
        self.statements.append(query)
        self.values.append(values)
        self.handles.append(conn)
        if self.failures.get(query):
            raise self.failures[query].pop(0)
        if no_result:
            return None
        return self.rows if as_list else (self.rows or [None])[0]


@pytest.fixture(autouse=True)
def reset_registry():
    ConnectionRegistry().reset()
    TransactionalRegistry().reset()


@pytest.fixture
def interface():
    return RecordingInterface()


@pytest.fixture
def connection(interface):
    return ConnectionRegistry().register("default", interface)


@pytest.fixture
def settings():
    return TransactionSettings(
        connection=None, attempts=1, throw_on_failure=True
    )


@pytest.fixture
def dispatcher(connection, settings):
    return TransactionDispatcher(ConnectionRegistry(), settings)
