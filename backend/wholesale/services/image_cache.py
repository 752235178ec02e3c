"""
Product image cache.

Images are downloaded from Zoho once and kept on disk, named by Zoho item id
(or group-<id> for item group images) with an extension from the content
type. Products whose image was uploaded by an admin are never touched.
"""
import asyncio
from collections import deque
from collections.abc import Awaitable, Callable, Coroutine
from pathlib import Path
from typing import Any, Optional

from wholesale.core.database import SessionContextFactory
from wholesale.core.logging import get_logger
from wholesale.models.product import ImageSource
from wholesale.repositories.product import ProductRepository
from wholesale.services.zoho_client import ZohoAPIError, ZohoClient

logger = get_logger(__name__)

CONTENT_TYPE_EXTENSIONS = {
    "image/jpeg": ".jpg",
    "image/jpg": ".jpg",
    "image/png": ".png",
    "image/gif": ".gif",
    "image/webp": ".webp",
}


class ImageFetchError(Exception):
    """Image could not be downloaded or stored."""


def group_image_key(group_id: str) -> str:
    return f"group-{group_id}"


class ImageCache:
    """Filesystem cache of Zoho product images with item -> group fallback."""

    def __init__(
        self,
        client: ZohoClient,
        cache_dir: str | Path,
        session_context: SessionContextFactory,
        url_prefix: str = "/product-images",
    ) -> None:
        self.client = client
        self.cache_dir = Path(cache_dir)
        self.session_context = session_context
        self.url_prefix = url_prefix.rstrip("/")
        # Remote ids known to have no image, so they are not asked for again
        self.items_without_image: set[str] = set()
        self.groups_without_image: set[str] = set()

    def cached_path(self, key: str) -> Optional[Path]:
        if not self.cache_dir.is_dir():
            return None
        for path in sorted(self.cache_dir.glob(f"{key}.*")):
            return path
        return None

    def url_for(self, path: Path) -> str:
        return f"{self.url_prefix}/{path.name}"

    def _store(self, key: str, content: bytes, content_type: str) -> Path:
        extension = CONTENT_TYPE_EXTENSIONS.get(content_type.lower(), ".jpg")
        try:
            self.cache_dir.mkdir(parents=True, exist_ok=True)
            path = self.cache_dir / f"{key}{extension}"
            path.write_bytes(content)
        except OSError as e:
            raise ImageFetchError(f"Could not store image {key}: {e}") from e
        return path

    async def fetch_item_image(self, zoho_item_id: str) -> Optional[Path]:
        cached = self.cached_path(zoho_item_id)
        if cached:
            return cached
        if zoho_item_id in self.items_without_image:
            return None

        try:
            image = await self.client.get_item_image(zoho_item_id)
        except ZohoAPIError as e:
            raise ImageFetchError(f"Failed to fetch image for item {zoho_item_id}: {e}") from e
        if image is None:
            self.items_without_image.add(zoho_item_id)
            return None
        return self._store(zoho_item_id, *image)

    async def fetch_group_image(self, zoho_group_id: str) -> Optional[Path]:
        key = group_image_key(zoho_group_id)
        cached = self.cached_path(key)
        if cached:
            return cached
        if zoho_group_id in self.groups_without_image:
            return None

        try:
            image = await self.client.get_item_group_image(zoho_group_id)
        except ZohoAPIError as e:
            raise ImageFetchError(f"Failed to fetch image for group {zoho_group_id}: {e}") from e
        if image is None:
            self.groups_without_image.add(zoho_group_id)
            return None
        return self._store(key, *image)

    async def resolve_image(self, zoho_item_id: str, zoho_group_id: Optional[str] = None) -> Optional[Path]:
        """Item image first, then the image of its group."""
        path = await self.fetch_item_image(zoho_item_id)
        if path is None and zoho_group_id:
            path = await self.fetch_group_image(zoho_group_id)
        return path

    async def refresh_product_image(self, zoho_item_id: str) -> bool:
        """
        Download and attach an image to the product with this Zoho id.

        Returns True when the product's image_url was set. The uploaded flag
        is checked again right before writing, since an admin upload may
        land while the download is in flight.
        """
        async with self.session_context() as session:
            product = await ProductRepository(session).get_by_zoho_item_id(zoho_item_id)
            if product is None or product.has_uploaded_image:
                return False
            group_id = product.zoho_group_id

        path = await self.resolve_image(zoho_item_id, group_id)
        if path is None:
            return False

        async with self.session_context() as session:
            product = await ProductRepository(session).get_by_zoho_item_id(zoho_item_id)
            if product is None or product.has_uploaded_image:
                return False
            product.image_url = self.url_for(path)
            product.image_source = ImageSource.ZOHO.value

        logger.debug("Product image cached", zoho_item_id=zoho_item_id, file=path.name)
        return True


class ImageFetchQueue:
    """
    In-process FIFO of Zoho item ids awaiting an image download.

    Ids already waiting are not queued twice. A single drainer runs at a
    time; it is started by the first enqueue and stops when the queue is
    empty, sleeping between items to stay under the Zoho rate limit.
    """

    def __init__(
        self,
        fetch: Callable[[str], Awaitable[Any]],
        delay_seconds: float = 0.5,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
        spawn: Callable[[Coroutine[Any, Any, None]], asyncio.Task] = asyncio.create_task,
    ) -> None:
        self._fetch = fetch
        self.delay_seconds = delay_seconds
        self._sleep = sleep
        self._spawn = spawn
        self._pending: deque[str] = deque()
        self._queued: set[str] = set()
        self._task: Optional[asyncio.Task] = None
        self.is_processing = False

    def __len__(self) -> int:
        return len(self._pending)

    def enqueue(self, zoho_item_id: str) -> bool:
        """Queue an item. Returns False when it is already waiting."""
        if zoho_item_id in self._queued:
            return False
        self._pending.append(zoho_item_id)
        self._queued.add(zoho_item_id)
        if not self.is_processing:
            self.is_processing = True
            self._task = self._spawn(self._drain())
        return True

    async def _drain(self) -> None:
        try:
            while self._pending:
                zoho_item_id = self._pending.popleft()
                self._queued.discard(zoho_item_id)
                try:
                    await self._fetch(zoho_item_id)
                except Exception as e:
                    logger.warning("Image fetch failed", zoho_item_id=zoho_item_id, error=str(e))
                if self._pending:
                    await self._sleep(self.delay_seconds)
        finally:
            self.is_processing = False

    async def join(self) -> None:
        """Wait until the current drainer finishes."""
        if self._task is not None and not self._task.done():
            await self._task

    async def close(self) -> None:
        """Drop pending items and stop the drainer."""
        self._pending.clear()
        self._queued.clear()
        if self._task is not None and not self._task.done():
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
