"""Persistence and reporting of sync runs in ``api_sync_logs``."""

from datetime import datetime, timedelta, timezone
from decimal import Decimal
from typing import TYPE_CHECKING, Any, Dict, List, Optional, Tuple
from uuid import UUID

import structlog
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from storefront.models.sync_log import SyncLog

if TYPE_CHECKING:
    from storefront.services.sync_service import SyncRun

logger = structlog.get_logger(__name__)


class SyncLogService:
    """Records one SyncLog row per supplier run and reports on them."""

    def __init__(self, db: AsyncSession):
        """Initialize sync log service.

        Args:
            db: Async database session
        """
        self.db = db
        self.logger = logger.bind(service="sync_log_service")

    async def start(self, source: str, metadata: Optional[Dict[str, Any]] = None) -> SyncLog:
        """Create a log row with status 'running'."""
        log = SyncLog(
            source=source,
            sync_type="products",
            status="running",
            started_at=datetime.now(timezone.utc),
            errors=[],
            metadata_=metadata or {},
        )
        self.db.add(log)
        await self.db.commit()
        await self.db.refresh(log)
        return log

    async def finish(self, log_id: UUID, run: "SyncRun") -> Optional[SyncLog]:
        """Copy a finished run's counters, errors and status onto its log row."""
        log = await self.db.get(SyncLog, log_id)
        if log is None:
            self.logger.warning("sync_log_not_found", log_id=str(log_id))
            return None

        log.status = run.status.value
        log.completed_at = run.finished_at or datetime.now(timezone.utc)
        log.duration_seconds = Decimal(str(round(run.duration_seconds or 0.0, 2)))
        log.products_collected = run.products_collected
        log.products_with_stock = run.products_with_stock
        log.products_synced = run.products_synced
        log.errors = [e.to_dict() for e in run.errors]
        log.error_message = run.fatal_error

        await self.db.commit()
        return log

    async def list_logs(
        self,
        source: Optional[str] = None,
        status: Optional[str] = None,
        limit: int = 20,
        offset: int = 0,
    ) -> Tuple[List[SyncLog], int]:
        """Most recent logs first, with the total count for pagination."""
        query = select(SyncLog)
        count_query = select(func.count()).select_from(SyncLog)
        if source:
            query = query.where(SyncLog.source == source)
            count_query = count_query.where(SyncLog.source == source)
        if status:
            query = query.where(SyncLog.status == status)
            count_query = count_query.where(SyncLog.status == status)

        total = (await self.db.execute(count_query)).scalar_one()
        result = await self.db.execute(
            query.order_by(SyncLog.started_at.desc()).limit(limit).offset(offset)
        )
        return list(result.scalars().all()), total

    async def get_latest(self, source: str) -> Optional[SyncLog]:
        result = await self.db.execute(
            select(SyncLog).where(SyncLog.source == source).order_by(SyncLog.started_at.desc()).limit(1)
        )
        return result.scalar_one_or_none()

    async def get_stats(self, source: Optional[str] = None, days: int = 7) -> Dict[str, Any]:
        """Aggregate run statistics over the last ``days`` days."""
        since = datetime.now(timezone.utc) - timedelta(days=days)
        query = select(SyncLog).where(SyncLog.started_at >= since)
        if source:
            query = query.where(SyncLog.source == source)
        logs = list((await self.db.execute(query.order_by(SyncLog.started_at.desc()))).scalars().all())

        finished = [log for log in logs if log.status != "running"]
        successful = sum(1 for log in finished if log.status == "success")
        durations = [float(log.duration_seconds) for log in finished if log.duration_seconds is not None]

        return {
            "period_days": days,
            "total_runs": len(logs),
            "successful_runs": successful,
            "failed_runs": len(finished) - successful,
            "running_runs": len(logs) - len(finished),
            "success_rate": round(successful / len(finished) * 100, 1) if finished else 0.0,
            "total_products_synced": sum(log.products_synced for log in finished),
            "avg_duration_seconds": round(sum(durations) / len(durations), 2) if durations else None,
            "last_run_at": logs[0].started_at if logs else None,
        }
