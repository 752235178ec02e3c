"""
Job queue processor - drains pending outbound jobs against Zoho Books.

Each job is claimed (status processing, attempts incremented) and committed
before its handler runs, so a crash mid-job leaves a visible processing row
with a nonzero attempt count.
"""
from collections.abc import Awaitable, Callable
from typing import Any, Optional

from pydantic import ValidationError

from wholesale.core.config import Settings
from wholesale.core.config import settings as default_settings
from wholesale.core.database import SessionContextFactory, utc_now
from wholesale.core.logging import get_logger
from wholesale.models.job import Job, JobStatus
from wholesale.models.order import OrderStatus
from wholesale.repositories.job import JobRepository
from wholesale.repositories.order import OrderRepository
from wholesale.repositories.user import UserRepository
from wholesale.schemas.jobs import (
    CreateCustomerPayload,
    JobRunResult,
    PushOrderPayload,
    parse_job_payload,
)
from wholesale.services.zoho_books import ZohoBooksService

logger = get_logger(__name__)


class JobHandlerError(Exception):
    """A job attempt failed; the message is stored on the job."""
    pass


class JobQueueProcessor:
    """Runs pending jobs once each, oldest first."""

    def __init__(
        self,
        books: ZohoBooksService,
        session_context: SessionContextFactory,
        settings: Optional[Settings] = None,
    ) -> None:
        self.books = books
        self.session_context = session_context
        self.settings = settings or default_settings
        self._handlers: dict[type, Callable[[Job, Any], Awaitable[str]]] = {
            CreateCustomerPayload: self._create_customer,
            PushOrderPayload: self._push_order,
        }

    async def process_job_queue(self) -> list[JobRunResult]:
        async with self.session_context() as session:
            jobs = await JobRepository(session).get_pending_jobs()
            job_ids = [job.id for job in jobs]

        if not job_ids:
            logger.debug("No pending jobs")
            return []

        logger.info("Processing job queue", pending=len(job_ids))
        results = []
        for job_id in job_ids:
            result = await self.process_job(job_id)
            if result is not None:
                results.append(result)

        logger.info(
            "Job queue processed",
            processed=len(results),
            succeeded=sum(1 for r in results if r.success),
        )
        return results

    async def process_job(self, job_id: str) -> Optional[JobRunResult]:
        """Run one attempt of a pending job. Returns None if it is no longer pending."""
        async with self.session_context() as session:
            jobs = JobRepository(session)
            job = await jobs.get_by_id(job_id)
            if job is None or job.status != JobStatus.PENDING.value:
                return None
            await jobs.update(job, {
                "status": JobStatus.PROCESSING.value,
                "attempts": job.attempts + 1,
                "last_attempt_at": utc_now(),
            })
            raw_payload = job.payload

        try:
            payload = parse_job_payload(raw_payload)
            handler = self._handlers[type(payload)]
            message = await handler(job, payload)
        except (JobHandlerError, ValidationError) as e:
            return await self._finish(job_id, success=False, message=str(e))
        except Exception as e:
            logger.error("Job handler raised", job_id=job_id, job_type=job.job_type, error=str(e))
            return await self._finish(job_id, success=False, message=str(e) or type(e).__name__)

        return await self._finish(job_id, success=True, message=message)

    async def _finish(self, job_id: str, *, success: bool, message: str) -> JobRunResult:
        async with self.session_context() as session:
            jobs = JobRepository(session)
            job = await jobs.get_by_id(job_id)
            if success:
                updates = {
                    "status": JobStatus.COMPLETED.value,
                    "error_message": None,
                    "completed_at": utc_now(),
                }
            elif job.attempts < job.max_attempts:
                updates = {"status": JobStatus.PENDING.value, "error_message": message}
            else:
                updates = {"status": JobStatus.FAILED.value, "error_message": message}
            await jobs.update(job, updates)

            if success:
                logger.info("Job completed", job_id=job_id, job_type=job.job_type)
            else:
                logger.warning(
                    "Job attempt failed",
                    job_id=job_id,
                    job_type=job.job_type,
                    attempts=job.attempts,
                    max_attempts=job.max_attempts,
                    status=job.status,
                    error=message,
                )

            return JobRunResult(
                job_id=job.id,
                job_type=job.job_type,
                success=success,
                status=job.status,
                message=message,
            )

    # ============================================
    # HANDLERS
    # ============================================

    async def _create_customer(self, job: Job, payload: CreateCustomerPayload) -> str:
        result = await self.books.create_customer(payload)
        if not result.success:
            raise JobHandlerError(result.message or "Failed to create customer")

        if job.user_id:
            async with self.session_context() as session:
                users = UserRepository(session)
                user = await users.get_by_id(job.user_id)
                if user is not None:
                    await users.update(user, {"zoho_customer_id": result.customer_id})

        return f"Created Zoho customer {result.customer_id}"

    async def _push_order(self, job: Job, payload: PushOrderPayload) -> str:
        if job.order_id:
            async with self.session_context() as session:
                order = await OrderRepository(session).get_by_id(job.order_id)
                if order is not None and order.zoho_sales_order_id:
                    return f"Order already pushed as {order.zoho_sales_order_id}"

        result = await self.books.create_sales_order(payload)
        if not result.success:
            raise JobHandlerError(result.message or "Failed to create sales order")

        if job.order_id:
            await mark_order_pushed(self.session_context, job.order_id, result.sales_order_id)

        return f"Created Zoho sales order {result.sales_order_number or result.sales_order_id}"


async def mark_order_pushed(
    session_context: SessionContextFactory,
    order_id: str,
    sales_order_id: Optional[str],
) -> None:
    """Record a successful push: the order becomes approved with its Zoho id set."""
    async with session_context() as session:
        orders = OrderRepository(session)
        order = await orders.get_by_id(order_id)
        if order is None:
            return
        await orders.update(order, {
            "status": OrderStatus.APPROVED.value,
            "zoho_sales_order_id": sales_order_id,
            "zoho_pushed_at": utc_now(),
        })
