"""
Admin API routes: Zoho sync control, job queue and approvals.

Every route requires the X-Admin-Key header.
"""
from typing import Annotated, Optional

from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, Query, status

from wholesale.core.database import DbSession
from wholesale.core.logging import get_logger
from wholesale.models.job import JobStatus
from wholesale.models.sync import SyncMode
from wholesale.repositories.job import JobRepository
from wholesale.routers.deps import Registry, require_admin
from wholesale.schemas.commerce import ApprovalResult, RejectOrderRequest
from wholesale.schemas.jobs import JobResponse, JobRunResult
from wholesale.schemas.sync import ConnectionTestResponse, SyncRunResponse, SyncTriggerRequest
from wholesale.services.webhook_stats import WebhookStatsSnapshot

logger = get_logger(__name__)

router = APIRouter(prefix="/admin", tags=["admin"], dependencies=[Depends(require_admin)])


# ============================================
# ZOHO SYNC
# ============================================

@router.post("/zoho/sync", status_code=status.HTTP_202_ACCEPTED)
async def trigger_sync(
    request: SyncTriggerRequest,
    background_tasks: BackgroundTasks,
    registry: Registry,
) -> dict:
    """Start a catalog sync in the background."""
    if not registry.settings.zoho_configured:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Zoho credentials are not configured",
        )

    mode = SyncMode.FULL if request.full_sync else SyncMode.INCREMENTAL
    background_tasks.add_task(registry.reconciler.run_catalog_sync, mode, "manual")
    logger.info("Manual sync triggered", mode=mode.value)
    return {"message": "Sync started", "mode": mode.value}


@router.post("/zoho/sync/customers", status_code=status.HTTP_202_ACCEPTED)
async def trigger_customer_sync(
    background_tasks: BackgroundTasks,
    registry: Registry,
) -> dict:
    if not registry.settings.zoho_configured:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Zoho credentials are not configured",
        )

    background_tasks.add_task(registry.customer_sync.sync_customer_statuses, "manual")
    return {"message": "Customer sync started"}


@router.get("/zoho/sync/history", response_model=list[SyncRunResponse])
async def sync_history(
    registry: Registry,
    limit: Annotated[int, Query(ge=1, le=100)] = 20,
) -> list[SyncRunResponse]:
    runs = await registry.reconciler.get_sync_history(limit=limit)
    return [SyncRunResponse.model_validate(run) for run in runs]


@router.get("/zoho/test", response_model=ConnectionTestResponse)
async def test_connection(registry: Registry) -> ConnectionTestResponse:
    success, message = await registry.reconciler.test_connection()
    return ConnectionTestResponse(success=success, message=message)


@router.get("/zoho/webhooks/stats", response_model=WebhookStatsSnapshot, response_model_by_alias=True)
async def webhook_stats(registry: Registry) -> WebhookStatsSnapshot:
    return registry.webhook_stats.snapshot()


@router.delete("/zoho/webhooks/stats", status_code=status.HTTP_204_NO_CONTENT)
async def clear_webhook_stats(registry: Registry) -> None:
    registry.webhook_stats.clear()


# ============================================
# JOB QUEUE
# ============================================

@router.post("/jobs/process", response_model=list[JobRunResult])
async def process_jobs(registry: Registry) -> list[JobRunResult]:
    """Drain the job queue now instead of waiting for the worker."""
    return await registry.jobs.process_job_queue()


@router.get("/jobs", response_model=list[JobResponse])
async def list_jobs(
    session: DbSession,
    job_status: Annotated[Optional[JobStatus], Query(alias="status")] = None,
    limit: Annotated[int, Query(ge=1, le=500)] = 100,
) -> list[JobResponse]:
    jobs = await JobRepository(session).get_jobs(
        status=job_status.value if job_status else None,
        limit=limit,
    )
    return [JobResponse.model_validate(job) for job in jobs]


@router.post("/jobs/{job_id}/retry", response_model=JobResponse)
async def retry_job(job_id: str, session: DbSession) -> JobResponse:
    """Re-arm a failed job for another round of attempts."""
    repo = JobRepository(session)
    job = await repo.get_by_id(job_id)
    if not job:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Job not found")
    if job.status != JobStatus.FAILED.value:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Only failed jobs can be retried (status is {job.status})",
        )

    job = await repo.retry_job(job)
    logger.info("Job re-queued", job_id=job_id, job_type=job.job_type)
    return JobResponse.model_validate(job)


# ============================================
# APPROVALS
# ============================================

@router.post("/users/{user_id}/approve", response_model=ApprovalResult)
async def approve_user(user_id: str, registry: Registry) -> ApprovalResult:
    return await registry.approvals.approve_user(user_id)


@router.post("/users/{user_id}/reject", response_model=ApprovalResult)
async def reject_user(user_id: str, registry: Registry) -> ApprovalResult:
    return await registry.approvals.reject_user(user_id)


@router.post("/orders/{order_id}/approve", response_model=ApprovalResult)
async def approve_order(order_id: str, registry: Registry) -> ApprovalResult:
    return await registry.approvals.approve_order(order_id)


@router.post("/orders/{order_id}/reject", response_model=ApprovalResult)
async def reject_order(
    order_id: str,
    body: RejectOrderRequest,
    registry: Registry,
) -> ApprovalResult:
    return await registry.approvals.reject_order(order_id, reason=body.reason)
