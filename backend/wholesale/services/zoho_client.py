"""
Zoho API client for Inventory and Books.
Handles OAuth token refresh, retries, and a shared rate-limit cooldown.
"""
import asyncio
import time
from collections.abc import Awaitable, Callable
from typing import Any, Optional, TypeVar
from urllib.parse import urlsplit

import httpx
from pydantic import BaseModel

from wholesale.core.config import Settings
from wholesale.core.config import settings as default_settings
from wholesale.core.database import SessionContextFactory
from wholesale.core.logging import get_logger
from wholesale.models.sync import ZohoApiLog
from wholesale.schemas.zoho import (
    ZohoCategory,
    ZohoContact,
    ZohoItemGroup,
    ZohoItemPage,
    ZohoPriceBook,
    ZohoPriceBookItem,
)

logger = get_logger(__name__)

T = TypeVar("T")

# Zoho reports throttling in error text as well as with HTTP 429
RATE_LIMIT_MARKERS = ("too many requests", "access denied")


class ZohoAPIError(Exception):
    """Error returned by (or while reaching) the Zoho API."""

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        endpoint: Optional[str] = None,
    ) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.endpoint = endpoint


class ZohoRateLimitError(ZohoAPIError):
    """HTTP 429 from Zoho."""


class ZohoAuthError(ZohoAPIError):
    """OAuth token refresh failed."""


def is_rate_limit_error(exc: BaseException) -> bool:
    if isinstance(exc, ZohoRateLimitError):
        return True
    if isinstance(exc, ZohoAPIError) and exc.status_code == 429:
        return True
    message = str(exc).lower()
    return any(marker in message for marker in RATE_LIMIT_MARKERS)


def is_transient_error(exc: BaseException) -> bool:
    """Network failures and 5xx responses are worth retrying."""
    if isinstance(exc, httpx.TransportError):
        return True
    if isinstance(exc, ZohoAuthError):
        return False
    if isinstance(exc, ZohoAPIError):
        return exc.status_code is None or exc.status_code >= 500
    return False


class ApiCallRecord(BaseModel):
    endpoint: str
    method: str
    status_code: Optional[int] = None
    success: bool
    error_message: Optional[str] = None


ApiLogWriter = Callable[[ApiCallRecord], Awaitable[None]]


def database_api_logger(session_context: SessionContextFactory) -> ApiLogWriter:
    """Build an audit writer that stores each call in zoho_api_logs."""

    async def write(record: ApiCallRecord) -> None:
        async with session_context() as session:
            session.add(ZohoApiLog(**record.model_dump()))

    return write


class ZohoClient:
    """
    Async Zoho Inventory/Books client.

    One instance is shared by every caller in the process, so the token cache
    and the rate-limit cooldown are shared as well:
    - the access token is refreshed when it is within the refresh margin of expiry
    - a rate-limited call pushes `rate_limited_until` forward and every later
      call waits for it, whatever endpoint it targets
    - other transient failures back off per call without touching the cooldown
    - every HTTP call is recorded through the audit writer without blocking
    """

    def __init__(
        self,
        settings: Optional[Settings] = None,
        http_client: Optional[httpx.AsyncClient] = None,
        api_logger: Optional[ApiLogWriter] = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.settings = settings or default_settings
        self.http = http_client or httpx.AsyncClient(timeout=self.settings.zoho_http_timeout_seconds)
        self.api_logger = api_logger
        self._sleep = sleep
        self._clock = clock

        self._access_token: Optional[str] = None
        self._token_expires_at = 0.0
        self.rate_limited_until = 0.0
        self.consecutive_rate_limits = 0
        self._log_tasks: set[asyncio.Task] = set()

    # ============================================
    # RETRY AND RATE LIMITING
    # ============================================

    def compute_backoff(self, attempt: int) -> float:
        """Exponential backoff for the given 1-based attempt, capped."""
        delay = self.settings.zoho_backoff_base_seconds * (2 ** (max(attempt, 1) - 1))
        return min(delay, self.settings.zoho_backoff_cap_seconds)

    def note_rate_limited(self) -> float:
        """Record a rate-limit hit and extend the shared cooldown. Returns the backoff used."""
        self.consecutive_rate_limits += 1
        backoff = self.compute_backoff(self.consecutive_rate_limits)
        # An earlier, longer cooldown is never shortened
        self.rate_limited_until = max(self.rate_limited_until, self._clock() + backoff)
        return backoff

    @property
    def cooldown_remaining(self) -> float:
        return max(0.0, self.rate_limited_until - self._clock())

    async def wait_for_cooldown(self) -> None:
        remaining = self.cooldown_remaining
        if remaining > 0:
            logger.info("Waiting for Zoho rate limit cooldown", seconds=round(remaining, 2))
            await self._sleep(remaining)

    async def request(self, fn: Callable[[], Awaitable[T]], *, operation_name: str) -> T:
        """
        Run a Zoho call with retries.

        Args:
            fn: Zero-argument coroutine factory performing one attempt
            operation_name: Label used in logs

        Raises:
            The last error once attempts are exhausted, or the first
            permanent (non-retryable) error immediately.
        """
        max_attempts = self.settings.zoho_max_attempts
        last_error: Optional[BaseException] = None

        for attempt in range(1, max_attempts + 1):
            await self.wait_for_cooldown()
            try:
                result = await fn()
            except Exception as e:
                last_error = e
                if is_rate_limit_error(e):
                    backoff = self.note_rate_limited()
                    logger.warning(
                        "Zoho rate limit hit",
                        operation=operation_name,
                        attempt=attempt,
                        cooldown_seconds=backoff,
                    )
                    continue
                if is_transient_error(e):
                    if attempt < max_attempts:
                        delay = self.compute_backoff(attempt)
                        logger.warning(
                            "Zoho request failed, retrying",
                            operation=operation_name,
                            attempt=attempt,
                            delay_seconds=delay,
                            error=str(e),
                        )
                        await self._sleep(delay)
                    continue
                raise

            self.consecutive_rate_limits = 0
            return result

        if last_error is None:
            raise ZohoAPIError(f"{operation_name} was not attempted (zoho_max_attempts={max_attempts})")
        logger.error(
            "Zoho request failed after retries",
            operation=operation_name,
            attempts=max_attempts,
            error=str(last_error),
        )
        raise last_error

    # ============================================
    # AUTH
    # ============================================

    async def get_access_token(self) -> str:
        """Return the cached access token, refreshing it near expiry."""
        margin = self.settings.zoho_token_refresh_margin_seconds
        if self._access_token and self._clock() < self._token_expires_at - margin:
            return self._access_token

        if not self.settings.zoho_configured:
            raise ZohoAuthError("Zoho credentials not configured")

        endpoint = urlsplit(self.settings.zoho_accounts_url).path
        try:
            response = await self.http.post(
                self.settings.zoho_accounts_url,
                data={
                    "refresh_token": self.settings.zoho_refresh_token,
                    "client_id": self.settings.zoho_client_id,
                    "client_secret": self.settings.zoho_client_secret,
                    "grant_type": "refresh_token",
                },
            )
        except httpx.RequestError as e:
            raise ZohoAuthError(f"Token refresh failed: {e}", endpoint=endpoint) from e

        try:
            data = response.json()
        except ValueError:
            data = {}

        token = data.get("access_token") if isinstance(data, dict) else None
        if response.status_code != 200 or not token:
            error = data.get("error") if isinstance(data, dict) else None
            raise ZohoAuthError(
                f"Token refresh failed: {error or response.text[:200]}",
                status_code=response.status_code,
                endpoint=endpoint,
            )

        self._access_token = token
        self._token_expires_at = self._clock() + float(data.get("expires_in", 3600))
        logger.info("Zoho access token refreshed")
        return token

    # ============================================
    # HTTP
    # ============================================

    def _record_call(
        self,
        endpoint: str,
        method: str,
        status_code: Optional[int],
        success: bool,
        error_message: Optional[str] = None,
    ) -> None:
        logger.debug(
            "Zoho API call",
            endpoint=endpoint,
            method=method,
            status_code=status_code,
            success=success,
        )
        if self.api_logger is None:
            return
        record = ApiCallRecord(
            endpoint=endpoint,
            method=method,
            status_code=status_code,
            success=success,
            error_message=error_message[:500] if error_message else None,
        )
        task = asyncio.create_task(self._write_api_log(record))
        self._log_tasks.add(task)
        task.add_done_callback(self._log_tasks.discard)

    async def _write_api_log(self, record: ApiCallRecord) -> None:
        try:
            await self.api_logger(record)
        except Exception as e:
            logger.warning("Failed to write Zoho API log", endpoint=record.endpoint, error=str(e))

    async def flush_api_logs(self) -> None:
        """Wait for pending audit writes."""
        if self._log_tasks:
            await asyncio.gather(*list(self._log_tasks), return_exceptions=True)

    @staticmethod
    def _error_text(response: httpx.Response) -> str:
        try:
            data = response.json()
        except ValueError:
            return response.text[:500] or f"HTTP {response.status_code}"
        if isinstance(data, dict):
            return str(data.get("message") or data.get("error") or data)[:500]
        return str(data)[:500]

    async def _send(
        self,
        method: str,
        url: str,
        *,
        params: Optional[dict[str, Any]] = None,
        json: Optional[dict[str, Any]] = None,
    ) -> httpx.Response:
        """One authenticated HTTP attempt. Non-2xx responses raise ZohoAPIError."""
        token = await self.get_access_token()
        endpoint = urlsplit(url).path
        query = {"organization_id": self.settings.zoho_organization_id, **(params or {})}

        try:
            response = await self.http.request(
                method,
                url,
                params=query,
                json=json,
                headers={"Authorization": f"Zoho-oauthtoken {token}"},
            )
        except httpx.RequestError as e:
            self._record_call(endpoint, method, None, False, str(e))
            raise ZohoAPIError(f"Request failed: {e}", endpoint=endpoint) from e

        if response.is_success:
            self._record_call(endpoint, method, response.status_code, True)
            return response

        message = self._error_text(response)
        self._record_call(endpoint, method, response.status_code, False, message)
        if response.status_code == 429:
            raise ZohoRateLimitError(message, status_code=429, endpoint=endpoint)
        raise ZohoAPIError(message, status_code=response.status_code, endpoint=endpoint)

    async def _send_json(self, method: str, url: str, **kwargs: Any) -> dict[str, Any]:
        response = await self._send(method, url, **kwargs)
        data = response.json()
        code = data.get("code", 0)
        if code not in (0, "0"):
            raise ZohoAPIError(
                str(data.get("message") or f"Zoho error code {code}"),
                status_code=response.status_code,
                endpoint=urlsplit(url).path,
            )
        return data

    def _inventory(self, path: str) -> str:
        return f"{self.settings.zoho_inventory_url.rstrip('/')}/{path}"

    def _books(self, path: str) -> str:
        return f"{self.settings.zoho_books_url.rstrip('/')}/{path}"

    async def _get_image(self, url: str, operation_name: str) -> Optional[tuple[bytes, str]]:
        async def fetch() -> Optional[tuple[bytes, str]]:
            try:
                response = await self._send("GET", url)
            except ZohoAPIError as e:
                if e.status_code == 404:
                    return None
                raise
            content_type = response.headers.get("content-type", "").split(";")[0].strip()
            if not content_type.startswith("image/") or not response.content:
                return None
            return response.content, content_type

        return await self.request(fetch, operation_name=operation_name)

    # ============================================
    # INVENTORY
    # ============================================

    async def list_items(self, page: int = 1) -> ZohoItemPage:
        """One page of items, most recently modified first."""
        params = {
            "page": page,
            "per_page": self.settings.zoho_page_size,
            "sort_column": "last_modified_time",
            "sort_order": "D",
        }
        data = await self.request(
            lambda: self._send_json("GET", self._inventory("items"), params=params),
            operation_name="list_items",
        )
        return ZohoItemPage(
            items=data.get("items") or [],
            has_more_page=bool((data.get("page_context") or {}).get("has_more_page", False)),
        )

    async def list_categories(self) -> list[ZohoCategory]:
        data = await self.request(
            lambda: self._send_json("GET", self._inventory("categories")),
            operation_name="list_categories",
        )
        # Zoho lists a synthetic root category with id -1
        return [
            ZohoCategory.model_validate(raw)
            for raw in data.get("categories") or []
            if str(raw.get("category_id")) != "-1"
        ]

    async def list_item_groups(self) -> list[ZohoItemGroup]:
        """All item groups across pages."""
        groups: list[ZohoItemGroup] = []
        page = 1
        while True:
            params = {"page": page, "per_page": self.settings.zoho_page_size}
            data = await self.request(
                lambda: self._send_json("GET", self._inventory("itemgroups"), params=params),
                operation_name="list_item_groups",
            )
            groups.extend(ZohoItemGroup.model_validate(raw) for raw in data.get("itemgroups") or [])
            if not (data.get("page_context") or {}).get("has_more_page"):
                return groups
            page += 1

    async def get_item_group(self, group_id: str) -> dict[str, Any]:
        data = await self.request(
            lambda: self._send_json("GET", self._inventory(f"itemgroups/{group_id}")),
            operation_name="get_item_group",
        )
        return data.get("item_group") or {}

    async def get_item_image(self, item_id: str) -> Optional[tuple[bytes, str]]:
        """Item image bytes and content type, or None when the item has no image."""
        return await self._get_image(self._inventory(f"items/{item_id}/image"), "get_item_image")

    async def get_item_group_image(self, group_id: str) -> Optional[tuple[bytes, str]]:
        return await self._get_image(
            self._inventory(f"itemgroups/{group_id}/image"),
            "get_item_group_image",
        )

    async def list_price_books(self) -> list[ZohoPriceBook]:
        data = await self.request(
            lambda: self._send_json("GET", self._inventory("pricebooks")),
            operation_name="list_price_books",
        )
        return [ZohoPriceBook.model_validate(raw) for raw in data.get("pricebooks") or []]

    async def list_price_book_items(self, pricebook_id: str) -> list[ZohoPriceBookItem]:
        data = await self.request(
            lambda: self._send_json("GET", self._inventory(f"pricebooks/{pricebook_id}/items")),
            operation_name="list_price_book_items",
        )
        raw_items = data.get("pricebook_items") or data.get("items") or []
        return [ZohoPriceBookItem.model_validate(raw) for raw in raw_items]

    async def test_connection(self) -> tuple[bool, str]:
        """Fetch the first item page to verify credentials and reachability."""
        try:
            page = await self.list_items(page=1)
        except Exception as e:
            logger.warning("Zoho connection test failed", error=str(e))
            return False, str(e)
        return True, f"Connected to Zoho Inventory ({len(page.items)} items on first page)"

    # ============================================
    # BOOKS
    # ============================================

    async def get_contact(self, contact_id: str) -> Optional[ZohoContact]:
        """Books contact, or None when Zoho answers 404."""

        async def fetch() -> Optional[ZohoContact]:
            try:
                data = await self._send_json("GET", self._books(f"contacts/{contact_id}"))
            except ZohoAPIError as e:
                if e.status_code == 404:
                    return None
                raise
            contact = data.get("contact")
            return ZohoContact.model_validate(contact) if contact else None

        return await self.request(fetch, operation_name="get_contact")

    async def create_contact(self, body: dict[str, Any]) -> dict[str, Any]:
        data = await self.request(
            lambda: self._send_json("POST", self._books("contacts"), json=body),
            operation_name="create_contact",
        )
        return data.get("contact") or {}

    async def create_sales_order(self, body: dict[str, Any]) -> dict[str, Any]:
        data = await self.request(
            lambda: self._send_json("POST", self._books("salesorders"), json=body),
            operation_name="create_sales_order",
        )
        return data.get("salesorder") or {}

    async def close(self) -> None:
        await self.flush_api_logs()
        await self.http.aclose()
