"""
Core package containing configuration, database, security, and logging.
"""
from wholesale.core.config import settings
from wholesale.core.database import Base, DbSession, get_db_context, get_db_session
from wholesale.core.logging import configure_logging, get_logger
from wholesale.core.security import hash_password, verify_password, verify_webhook_secret

__all__ = [
    "settings",
    "Base",
    "DbSession",
    "get_db_context",
    "get_db_session",
    "configure_logging",
    "get_logger",
    "hash_password",
    "verify_password",
    "verify_webhook_secret",
]
