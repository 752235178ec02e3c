"""
Service registry - builds the process-wide service graph once at startup.

The API lifespan and the arq worker each create one registry and close it
at shutdown. Tests build their own with in-memory sessions and fake HTTP
transports, so no service state is shared between them.
"""
from dataclasses import dataclass
from typing import Optional

import httpx

from wholesale.core.config import Settings
from wholesale.core.database import SessionContextFactory
from wholesale.core.logging import get_logger
from wholesale.services.approvals import ApprovalService
from wholesale.services.customer_sync import CustomerStatusSync
from wholesale.services.image_cache import ImageCache, ImageFetchQueue
from wholesale.services.job_worker import JobQueueProcessor
from wholesale.services.notification_service import NotificationService
from wholesale.services.webhook_stats import WebhookStats
from wholesale.services.zoho_books import ZohoBooksService
from wholesale.services.zoho_client import ZohoClient, database_api_logger
from wholesale.services.zoho_sync import ZohoReconciler
from wholesale.services.zoho_webhooks import ZohoWebhookService

logger = get_logger(__name__)


@dataclass
class ServiceRegistry:
    settings: Settings
    session_context: SessionContextFactory
    zoho: ZohoClient
    image_cache: ImageCache
    image_queue: ImageFetchQueue
    notifications: NotificationService
    reconciler: ZohoReconciler
    webhook_stats: WebhookStats
    webhooks: ZohoWebhookService
    books: ZohoBooksService
    customer_sync: CustomerStatusSync
    jobs: JobQueueProcessor
    approvals: ApprovalService

    @classmethod
    def create(
        cls,
        settings: Settings,
        session_context: SessionContextFactory,
        http_client: Optional[httpx.AsyncClient] = None,
    ) -> "ServiceRegistry":
        zoho = ZohoClient(
            settings=settings,
            http_client=http_client,
            api_logger=database_api_logger(session_context),
        )
        image_cache = ImageCache(zoho, settings.image_cache_dir, session_context)
        image_queue = ImageFetchQueue(
            fetch=image_cache.refresh_product_image,
            delay_seconds=settings.image_queue_delay_seconds,
        )
        notifications = NotificationService(settings=settings, http_client=http_client)
        webhook_stats = WebhookStats()
        books = ZohoBooksService(zoho)

        registry = cls(
            settings=settings,
            session_context=session_context,
            zoho=zoho,
            image_cache=image_cache,
            image_queue=image_queue,
            notifications=notifications,
            reconciler=ZohoReconciler(
                zoho,
                session_context,
                image_queue=image_queue,
                notifications=notifications,
                settings=settings,
            ),
            webhook_stats=webhook_stats,
            webhooks=ZohoWebhookService(
                session_context,
                settings=settings,
                image_queue=image_queue,
                stats=webhook_stats,
            ),
            books=books,
            customer_sync=CustomerStatusSync(
                books,
                session_context,
                notifications=notifications,
                settings=settings,
            ),
            jobs=JobQueueProcessor(books, session_context, settings=settings),
            approvals=ApprovalService(books, session_context),
        )
        logger.info("Service registry created", zoho_configured=settings.zoho_configured)
        return registry

    async def aclose(self) -> None:
        """Stop background image downloads and release HTTP connections."""
        await self.image_queue.close()
        await self.zoho.close()
        logger.info("Service registry closed")
