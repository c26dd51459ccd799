from .middleware import SAFE_METHODS, TransactionMiddleware
from .quart_extension import QuartTransactionExtension
from .starlette_extension import StarletteTransactionExtension

__all__ = (
    "SAFE_METHODS",
    "QuartTransactionExtension",
    "StarletteTransactionExtension",
    "TransactionMiddleware",
)
