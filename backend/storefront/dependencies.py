"""FastAPI dependency injection providers."""

from typing import AsyncGenerator

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from storefront.db.session import async_session_factory
from storefront.services.sync_service import SyncOrchestrator, get_run_guard


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """Yield a database session for request-scoped usage.

    The session is automatically committed on success or rolled back on error.
    Always closed after the request completes.

    Usage:
        @router.get("/sync/logs")
        async def list_logs(db: AsyncSession = Depends(get_db)):
            ...
    """
    async with async_session_factory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
        finally:
            await session.close()


async def get_sync_orchestrator(db: AsyncSession = Depends(get_db)) -> SyncOrchestrator:
    """Orchestrator bound to the request session and the process-wide run guard."""
    return SyncOrchestrator(db, run_guard=get_run_guard())
