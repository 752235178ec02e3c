"""
Zoho webhook receiver routes.

Every delivery is answered 200 with the handler result, including ignored
and duplicate events, so Zoho does not retry them. Only a bad secret is
rejected with 401.
"""
import json
from typing import Annotated, Any, Optional

from fastapi import APIRouter, Header, Query, Request, status
from fastapi.responses import JSONResponse

from wholesale.core.logging import get_logger
from wholesale.routers.deps import Registry
from wholesale.schemas.webhooks import WebhookResult

logger = get_logger(__name__)

router = APIRouter(prefix="/webhooks/zoho", tags=["webhooks"])


async def read_payload(request: Request) -> Any:
    """Parsed JSON body, or None when the body is not JSON."""
    body = await request.body()
    if not body:
        return None
    try:
        return json.loads(body)
    except ValueError:
        logger.warning("Webhook body is not valid JSON", path=request.url.path)
        return None


def to_response(result: WebhookResult) -> JSONResponse:
    status_code = (
        status.HTTP_401_UNAUTHORIZED if result.action == "unauthorized" else status.HTTP_200_OK
    )
    return JSONResponse(status_code=status_code, content=result.model_dump(by_alias=True))


@router.post("/items")
async def item_webhook(
    request: Request,
    registry: Registry,
    secret: Annotated[Optional[str], Query()] = None,
    x_webhook_secret: Annotated[Optional[str], Header()] = None,
) -> JSONResponse:
    payload = await read_payload(request)
    result = await registry.webhooks.handle_item_webhook(payload, secret or x_webhook_secret)
    return to_response(result)


@router.post("/customers")
async def customer_webhook(
    request: Request,
    registry: Registry,
    secret: Annotated[Optional[str], Query()] = None,
    x_webhook_secret: Annotated[Optional[str], Header()] = None,
) -> JSONResponse:
    payload = await read_payload(request)
    result = await registry.webhooks.handle_customer_webhook(payload, secret or x_webhook_secret)
    return to_response(result)


@router.post("/invoices")
async def invoice_webhook(
    request: Request,
    registry: Registry,
    secret: Annotated[Optional[str], Query()] = None,
    x_webhook_secret: Annotated[Optional[str], Header()] = None,
) -> JSONResponse:
    payload = await read_payload(request)
    result = await registry.webhooks.handle_invoice_webhook(payload, secret or x_webhook_secret)
    return to_response(result)


@router.post("/bills")
async def bill_webhook(
    request: Request,
    registry: Registry,
    secret: Annotated[Optional[str], Query()] = None,
    x_webhook_secret: Annotated[Optional[str], Header()] = None,
) -> JSONResponse:
    payload = await read_payload(request)
    result = await registry.webhooks.handle_bill_webhook(payload, secret or x_webhook_secret)
    return to_response(result)
