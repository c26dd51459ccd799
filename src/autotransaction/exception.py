from typing import Optional


class AutoTransactionError(Exception):
    ...


class UnknownConnection(AutoTransactionError, KeyError):
    """Raised when a connection name has not been registered"""

    def __init__(self, name: Optional[str]):
        self.name = name
        if name is None:
            message = "No default connection has been registered"
        else:
            message = f"Connection '{name}' has not been registered"
        super().__init__(message)

    def __str__(self) -> str:
        # KeyError would otherwise wrap the message in quotes
        return str(self.args[0])


class NoSuchMethod(AutoTransactionError, AttributeError):
    """Raised when dispatching to a method the receiver does not have"""

    def __init__(self, receiver: object, method_name: str):
        self.receiver = receiver
        self.method_name = method_name
        super().__init__(
            f"Method {receiver.__class__.__name__}.{method_name} "
            "does not exist."
        )


class TransactionError(AutoTransactionError):
    """A unit of work failed on every attempt"""

    prefix = "Transaction failed: "

    def __init__(self, cause: BaseException):
        self.cause = cause
        super().__init__(f"{self.prefix}{cause}")


class TransactionProtocolError(AutoTransactionError):
    """A transaction control statement failed at the driver level"""
