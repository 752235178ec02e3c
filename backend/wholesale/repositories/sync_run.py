"""
SyncRun repository for reconciliation audit records.
"""
from datetime import datetime
from typing import Optional

from sqlalchemy import select

from wholesale.core.database import utc_now
from wholesale.models.sync import SyncRun, SyncStatus, SyncType
from wholesale.repositories.base import BaseRepository
from wholesale.schemas.sync import SyncResult


class SyncRunRepository(BaseRepository[SyncRun]):
    """Repository for SyncRun model operations."""

    model = SyncRun

    async def start(
        self,
        sync_type: SyncType,
        triggered_by: str,
        sync_mode: Optional[str] = None,
    ) -> SyncRun:
        """Record a run in the running state."""
        return await self.create({
            "sync_type": sync_type.value,
            "sync_mode": sync_mode,
            "status": SyncStatus.RUNNING.value,
            "started_at": utc_now(),
            "triggered_by": triggered_by,
        })

    async def finish(self, run: SyncRun, result: SyncResult) -> SyncRun:
        """Copy final counters onto the run and stamp completion."""
        completed_at = utc_now()
        return await self.update(run, {
            "status": result.status,
            "total_processed": result.total_processed,
            "created": result.created,
            "updated": result.updated,
            "skipped": result.skipped,
            "delisted": result.delisted,
            "errors": result.errors,
            "error_messages": list(result.error_messages),
            "completed_at": completed_at,
            "duration_ms": result.duration_ms,
        })

    async def last_successful_completion(self, sync_type: SyncType) -> Optional[datetime]:
        """Watermark: completion time of the latest completed run of this type."""
        stmt = (
            select(SyncRun.completed_at)
            .where(
                SyncRun.sync_type == sync_type.value,
                SyncRun.status == SyncStatus.COMPLETED.value,
                SyncRun.completed_at.is_not(None),
            )
            .order_by(SyncRun.completed_at.desc())
            .limit(1)
        )
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def get_history(self, limit: int = 20, sync_type: Optional[SyncType] = None) -> list[SyncRun]:
        """Most recent runs first."""
        stmt = select(SyncRun).order_by(SyncRun.started_at.desc()).limit(limit)
        if sync_type:
            stmt = stmt.where(SyncRun.sync_type == sync_type.value)
        result = await self.session.execute(stmt)
        return list(result.scalars().all())
