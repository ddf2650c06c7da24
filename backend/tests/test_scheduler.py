"""Tests for the periodic sync scheduler."""

import asyncio

import pytest
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from storefront.models import SyncLog
from storefront.services.sync_service import SyncStatus
from storefront.suppliers.register_adapters import register_all_adapters
from storefront.suppliers.scheduler import SYNC_JOB_ID, SyncScheduler


def session_factory(test_db: AsyncSession) -> async_sessionmaker:
    return async_sessionmaker(test_db.bind, class_=AsyncSession, expire_on_commit=False)


class TestSyncScheduler:

    def test_interval_must_be_positive(self, test_db: AsyncSession):
        with pytest.raises(ValueError):
            SyncScheduler(session_factory(test_db), interval_minutes=0)

    async def test_start_registers_job(self, test_db: AsyncSession):
        scheduler = SyncScheduler(session_factory(test_db), interval_minutes=30, source="syscom")

        scheduler.start(initial_delay_seconds=3600)
        try:
            assert scheduler.is_running()
            status = scheduler.get_job_status()
            assert status["job_id"] == SYNC_JOB_ID
            assert status["next_run"] is not None
        finally:
            scheduler.stop()
        # AsyncIOScheduler finishes shutting down on the next loop iteration
        await asyncio.sleep(0)

        assert not scheduler.is_running()

    async def test_job_status_empty_before_start(self, test_db: AsyncSession):
        scheduler = SyncScheduler(session_factory(test_db), interval_minutes=30)

        assert scheduler.get_job_status() == {}

    async def test_run_uses_stored_selection(self, test_db: AsyncSession):
        """With nothing selected the run fails before any supplier request and is logged."""
        register_all_adapters()
        scheduler = SyncScheduler(session_factory(test_db), interval_minutes=30, source="syscom")

        run = await scheduler.run_sync()

        assert run.status == SyncStatus.ERROR
        assert "no categories selected" in run.errors[0].message
        log = (await test_db.execute(select(SyncLog))).scalar_one()
        assert log.status == "error"
