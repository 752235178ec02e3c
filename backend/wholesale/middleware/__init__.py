"""
Middleware package.
"""
from wholesale.core.logging import LoggerContextMiddleware
from wholesale.middleware.error_handler import ErrorHandlerMiddleware

__all__ = [
    "ErrorHandlerMiddleware",
    "LoggerContextMiddleware",
]
