"""
Global error handling middleware.

Uses pure ASGI middleware (not BaseHTTPMiddleware) to avoid breaking
async generator dependencies like get_db_session().
"""
import json

from fastapi import HTTPException
from starlette.types import ASGIApp, Message, Receive, Scope, Send

from wholesale.core.logging import get_logger
from wholesale.services.commerce import CartValidationError, CommerceError
from wholesale.services.zoho_client import ZohoAPIError

logger = get_logger(__name__)


def error_response(exc: Exception) -> tuple[int, dict]:
    """Status code and JSON body for an exception escaping a route."""
    if isinstance(exc, CommerceError):
        body = {"detail": str(exc), "type": type(exc).__name__}
        if isinstance(exc, CartValidationError):
            body["errors"] = exc.messages
        return exc.status_code, body
    if isinstance(exc, ZohoAPIError):
        return 502, {"detail": f"Zoho API error: {exc}", "type": type(exc).__name__}
    return 500, {"detail": "Internal server error", "type": type(exc).__name__}


class ErrorHandlerMiddleware:
    """
    Pure ASGI error handler.

    Cart and order rule violations become 4xx responses carrying their
    message, Zoho failures become 502, anything else a JSON 500.

    Does NOT catch HTTPException; those are handled by FastAPI's default
    exception handler and must pass through unchanged.
    """

    def __init__(self, app: ASGIApp) -> None:
        self.app = app

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        response_started = False

        async def send_wrapper(message: Message) -> None:
            nonlocal response_started
            if message["type"] == "http.response.start":
                response_started = True
            await send(message)

        try:
            await self.app(scope, receive, send_wrapper)
        except Exception as e:
            if isinstance(e, HTTPException):
                raise

            if response_started:
                # Headers already sent, can't change the response
                logger.exception(
                    "Unhandled exception after response started",
                    error=str(e),
                    path=scope.get("path", "unknown"),
                )
                raise

            status_code, payload = error_response(e)
            if status_code >= 500:
                logger.exception("Unhandled exception", error=str(e), path=scope.get("path", "unknown"))
            else:
                logger.info("Request rejected", error=str(e), path=scope.get("path", "unknown"))

            body = json.dumps(payload).encode("utf-8")
            await send({
                "type": "http.response.start",
                "status": status_code,
                "headers": [
                    [b"content-type", b"application/json"],
                    [b"content-length", str(len(body)).encode()],
                ],
            })
            await send({
                "type": "http.response.body",
                "body": body,
            })
