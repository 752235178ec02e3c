"""
ARQ worker - scheduled Zoho sync, customer checks and job queue drains.

Cron entries and the admin API call the same service methods, so a manual
trigger behaves exactly like a scheduled run.
"""
from typing import Any

from arq import cron
from arq.connections import RedisSettings

from wholesale.core.config import Settings, settings
from wholesale.core.database import get_db_context
from wholesale.core.logging import configure_logging, get_logger
from wholesale.models.sync import SyncMode
from wholesale.services.registry import ServiceRegistry

logger = get_logger(__name__)

JOB_QUEUE_INTERVAL_MINUTES = 5


def get_redis_settings() -> RedisSettings:
    """Get Redis connection settings from config."""
    redis_url = str(settings.redis_url) if settings.redis_url else "redis://localhost:6379"
    return RedisSettings.from_dsn(redis_url)


def every_minutes(interval: int) -> dict[str, Any]:
    """Cron fields firing every `interval` minutes, aligned to the hour."""
    if interval < 60:
        return {"minute": set(range(0, 60, interval))}
    return {"hour": set(range(0, 24, max(interval // 60, 1))), "minute": 0}


# ============================================
# LIFECYCLE
# ============================================

async def startup(ctx: dict) -> None:
    configure_logging()
    ctx["registry"] = ServiceRegistry.create(settings, get_db_context)
    logger.info("Worker started", webhook_mode=settings.webhook_mode)


async def shutdown(ctx: dict) -> None:
    registry: ServiceRegistry = ctx.get("registry")
    if registry is not None:
        await registry.aclose()
    logger.info("Worker stopped")


# ============================================
# JOB FUNCTIONS
# ============================================

async def run_job_queue(ctx: dict) -> dict[str, Any]:
    """Drain pending outbound jobs."""
    registry: ServiceRegistry = ctx["registry"]
    results = await registry.jobs.process_job_queue()
    return {
        "processed": len(results),
        "succeeded": sum(1 for r in results if r.success),
    }


async def _catalog_sync(ctx: dict, mode: SyncMode) -> dict[str, Any]:
    registry: ServiceRegistry = ctx["registry"]
    if not registry.settings.zoho_configured:
        logger.info("Zoho not configured, skipping scheduled sync", mode=mode.value)
        return {"skipped": True}

    result = await registry.reconciler.run_catalog_sync(mode, triggered_by="scheduler")
    return result.products.model_dump(include={"status", "created", "updated", "delisted", "errors"})


async def incremental_sync_job(ctx: dict) -> dict[str, Any]:
    return await _catalog_sync(ctx, SyncMode.INCREMENTAL)


async def full_sync_job(ctx: dict) -> dict[str, Any]:
    return await _catalog_sync(ctx, SyncMode.FULL)


async def customer_sync_job(ctx: dict) -> dict[str, Any]:
    """Re-check Zoho Books status of linked customers."""
    registry: ServiceRegistry = ctx["registry"]
    if not registry.settings.zoho_configured:
        return {"skipped": True}

    result = await registry.customer_sync.sync_customer_statuses(triggered_by="scheduler")
    return {
        "status": result.status,
        "checked": result.checked,
        "suspended": result.suspended,
        "reactivated": result.reactivated,
    }


# ============================================
# WORKER SETTINGS
# ============================================

def build_cron_jobs(config: Settings) -> list:
    """
    Schedule for the worker.

    With webhooks delivering changes, products need only a daily incremental
    pass and a weekly full pass; without them, incremental runs hourly.
    """
    jobs = [
        cron(run_job_queue, **every_minutes(JOB_QUEUE_INTERVAL_MINUTES), run_at_startup=True),
        cron(customer_sync_job, **every_minutes(config.customer_sync_interval_minutes)),
    ]
    if config.webhook_mode:
        jobs.append(cron(incremental_sync_job, hour=config.incremental_sync_hour, minute=0))
        jobs.append(cron(
            full_sync_job,
            weekday=config.full_sync_weekday,
            hour=config.full_sync_hour,
            minute=0,
        ))
    else:
        jobs.append(cron(incremental_sync_job, minute=0))
    return jobs


class WorkerSettings:
    """ARQ worker configuration."""

    functions = [
        run_job_queue,
        incremental_sync_job,
        full_sync_job,
        customer_sync_job,
    ]

    cron_jobs = build_cron_jobs(settings)

    on_startup = startup
    on_shutdown = shutdown

    redis_settings = get_redis_settings()

    # Worker settings
    max_jobs = 4
    job_timeout = 3600  # a full sync walks every page
    keep_result = 3600  # 1 hour
    retry_jobs = False  # the jobs table carries its own retry policy
