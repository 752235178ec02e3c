"""
Job repository for the outbound work queue.
"""
from typing import Optional, Union

from sqlalchemy import select

from wholesale.core.config import settings
from wholesale.models.job import Job, JobStatus
from wholesale.repositories.base import BaseRepository
from wholesale.schemas.jobs import CreateCustomerPayload, PushOrderPayload


class JobRepository(BaseRepository[Job]):
    """Repository for Job model operations."""

    model = Job

    async def create_job(
        self,
        payload: Union[CreateCustomerPayload, PushOrderPayload],
        *,
        user_id: Optional[str] = None,
        order_id: Optional[str] = None,
        max_attempts: Optional[int] = None,
    ) -> Job:
        """Queue a job; the payload's tag decides the job type."""
        return await self.create({
            "job_type": payload.job_type,
            "status": JobStatus.PENDING.value,
            "user_id": user_id,
            "order_id": order_id,
            "payload": payload.model_dump_json(),
            "attempts": 0,
            "max_attempts": max_attempts or settings.job_max_attempts,
        })

    async def get_pending_jobs(self, limit: Optional[int] = None) -> list[Job]:
        """Pending jobs, oldest first."""
        stmt = (
            select(Job)
            .where(Job.status == JobStatus.PENDING.value)
            .order_by(Job.created_at)
        )
        if limit:
            stmt = stmt.limit(limit)
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def get_jobs(self, status: Optional[str] = None, limit: int = 100) -> list[Job]:
        """Jobs newest first, optionally filtered by status."""
        stmt = select(Job).order_by(Job.created_at.desc()).limit(limit)
        if status:
            stmt = stmt.where(Job.status == status)
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def retry_job(self, job: Job) -> Job:
        """Re-arm a failed job for another full round of attempts."""
        return await self.update(job, {
            "status": JobStatus.PENDING.value,
            "attempts": 0,
            "error_message": None,
        })
