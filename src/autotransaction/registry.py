from __future__ import annotations

from collections import defaultdict
from typing import (
    Any,
    DefaultDict,
    Dict,
    Iterator,
    Optional,
    Tuple,
    Type,
    Union,
)
from urllib.parse import urlparse

from autotransaction.base.interface import BaseInterface
from autotransaction.connection import Connection
from autotransaction.exception import AutoTransactionError, UnknownConnection
from autotransaction.sql.mysql.interface import MysqlPool  # noqa
from autotransaction.sql.postgres.interface import PostgresPool
from autotransaction.sql.sqlite.interface import SQLitePool

DEFAULT_INTERFACE = PostgresPool


class ConnectionRegistry:
    """Resolves logical connection names to `Connection` objects.

    The first registered connection is the default one unless another is
    registered with `default=True` or selected with `set_default`.
    """

    _singleton = None
    _connections: Dict[str, Connection]
    _default: Optional[str]

    def __new__(cls, *args, **kwargs):
        if cls._singleton is None:
            cls.reset()
        return cls._singleton

    def register(
        self,
        name: str,
        interface: Optional[BaseInterface] = None,
        *,
        dsn: str = "",
        default: bool = False,
    ) -> Connection:
        """Bind a name to a database interface

        Args:
            name (str): The connection name
            interface (BaseInterface, optional): The database interface.
                Defaults to `None`.
            dsn (str, optional): Used to build an interface when none is
                passed. The scheme selects the driver; a plain file path is
                a SQLite database. Defaults to `""`.
            default (bool, optional): Make this the default connection.
                Defaults to `False`.

        Raises:
            AutoTransactionError: If the name is taken, or if both or
                neither of `interface` and `dsn` are passed

        Returns:
            Connection: The registered connection
        """
        if name in self._connections:
            raise AutoTransactionError(
                f"Connection '{name}' is already registered"
            )
        if interface and dsn:
            raise AutoTransactionError("Conflict with interface and DSN")
        if interface is None:
            if not dsn:
                raise AutoTransactionError(
                    f"Cannot register '{name}' without an interface or DSN"
                )
            interface = build_interface(dsn)

        connection = Connection(name, interface)
        self._connections[name] = connection
        if default or self._default is None:
            self._default = name
        return connection

    def set_default(self, name: str) -> None:
        if name not in self._connections:
            raise UnknownConnection(name)
        self._default = name

    @property
    def default(self) -> Optional[str]:
        return self._default

    def resolve(self, name: Optional[str] = None) -> Connection:
        """Fetch a registered connection

        Args:
            name (str, optional): The connection name, or `None` for the
                default connection. Defaults to `None`.

        Raises:
            UnknownConnection: If the name, or the default when no name is
                given, has not been registered

        Returns:
            Connection: The connection
        """
        key = self._default if name is None else name
        if key is None or key not in self._connections:
            raise UnknownConnection(name)
        return self._connections[key]

    async def open(self) -> None:
        """Open every registered interface"""
        for interface in self.interfaces():
            await interface.ensure_open()

    async def close(self) -> None:
        """Close every registered interface"""
        for interface in self.interfaces():
            if interface.is_open:
                await interface.close()

    def interfaces(self) -> Iterator[BaseInterface]:
        seen = set()
        for connection in self._connections.values():
            if id(connection.interface) not in seen:
                seen.add(id(connection.interface))
                yield connection.interface

    def __iter__(self) -> Iterator[Connection]:
        return iter(self._connections.values())

    def __len__(self) -> int:
        return len(self._connections)

    def __contains__(self, name: object) -> bool:
        return name in self._connections

    @classmethod
    def reset(cls):
        cls._singleton = super().__new__(cls)
        cls._singleton._connections = {}
        cls._singleton._default = None


class TransactionalRegistry:
    """Transaction options declared on methods, keyed by the owning class's
    module and qualified name, then by method name"""

    _singleton = None
    _declarations: DefaultDict[Tuple[str, str], Dict[str, Dict[str, Any]]]

    def __new__(cls, *args, **kwargs):
        if cls._singleton is None:
            cls.reset()
        return cls._singleton

    @classmethod
    def add(
        cls,
        module: str,
        owner: str,
        method_name: str,
        options: Dict[str, Any],
    ) -> None:
        instance = cls()
        instance._declarations[(module, owner)][method_name] = options

    @classmethod
    def get(
        cls, module: str, owner: str, method_name: str
    ) -> Optional[Dict[str, Any]]:
        declarations = cls()._declarations.get((module, owner), {})
        return declarations.get(method_name, None)

    @classmethod
    def lookup(
        cls, owner: Union[type, object], method_name: str
    ) -> Optional[Dict[str, Any]]:
        """Find the options of the method that a call would resolve to.

        Only the class that defines the method is consulted, so an override
        without `@transactional` is not transactional.
        """
        klass = owner if isinstance(owner, type) else owner.__class__
        for base in klass.__mro__:
            if method_name in vars(base):
                return cls.get(base.__module__, base.__qualname__, method_name)
        return None

    @classmethod
    def reset(cls):
        cls._singleton = super().__new__(cls)
        cls._singleton._declarations = defaultdict(dict)


def build_interface(dsn: str) -> BaseInterface:
    interface_type = get_interface_type(dsn)
    if interface_type is SQLitePool:
        return SQLitePool(_sqlite_path(dsn))
    return interface_type(dsn=dsn)


def get_interface_type(dsn: str) -> Type[BaseInterface]:
    scheme = urlparse(dsn).scheme
    # a plain path, or a file: URL, is a SQLite database file
    if not scheme or scheme == "file":
        return SQLitePool

    for interface_type in BaseInterface.registered_interfaces:
        if interface_type.matches(scheme):
            return interface_type
    return DEFAULT_INTERFACE


def _sqlite_path(dsn: str) -> str:
    parts = urlparse(dsn)
    if parts.scheme not in ("sqlite", "file"):
        return dsn
    path = parts.path[1:] if parts.path.startswith("/") else parts.path
    return parts.netloc + path or ":memory:"
