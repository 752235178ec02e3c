"""
Security utilities: password hashing and shared-secret webhook verification.
"""
import hmac
from typing import Optional

from passlib.context import CryptContext

from wholesale.core.logging import get_logger

logger = get_logger(__name__)

# Password hashing
pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto", bcrypt__rounds=12)


def verify_password(plain_password: str, hashed_password: str) -> bool:
    """Verify a password against its hash."""
    return pwd_context.verify(plain_password, hashed_password)


def hash_password(password: str) -> str:
    """Hash a password for storage."""
    return pwd_context.hash(password)


def verify_webhook_secret(
    provided_secret: Optional[str],
    configured_secret: Optional[str],
) -> bool:
    """
    Verify the shared secret sent with an inbound Zoho webhook.

    Some senders append a stray '&' to the query-string value, so a single
    trailing '&' on the provided secret is ignored.

    When no secret is configured every request is accepted. This keeps the
    receiver usable during initial setup but leaves the endpoint
    unauthenticated, so it is logged on every call.
    """
    if not configured_secret:
        logger.warning("Webhook secret not configured, accepting unauthenticated webhook")
        return True

    if not provided_secret:
        logger.warning("Webhook received without secret")
        return False

    candidate = provided_secret[:-1] if provided_secret.endswith("&") else provided_secret
    return hmac.compare_digest(candidate.encode(), configured_secret.encode())


def verify_admin_key(provided_key: Optional[str], configured_key: Optional[str]) -> bool:
    """Admin routes are closed entirely when no key is configured."""
    if not configured_key or not provided_key:
        return False
    return hmac.compare_digest(provided_key.encode(), configured_key.encode())
