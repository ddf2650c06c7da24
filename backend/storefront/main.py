"""Storefront sync service -- FastAPI Application Entry Point."""

import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI

from storefront.api.v1.router import api_v1_router
from storefront.config import settings
from storefront.db.session import async_session_factory, engine
from storefront.models import Base
from storefront.suppliers.register_adapters import register_all_adapters
from storefront.suppliers.scheduler import SyncScheduler

# Configure logging
logging.basicConfig(
    level=logging.INFO if settings.DEBUG else logging.WARNING,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)

# Global scheduler instance
scheduler: Optional[SyncScheduler] = None


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan: startup and shutdown events."""
    global scheduler

    # Startup
    logger.info("Starting storefront sync service...")
    logger.info(f"Environment: {settings.ENVIRONMENT}")
    logger.info(f"Debug mode: {settings.DEBUG}")

    # Auto-create tables on startup (safe for fresh deployments)
    try:
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        logger.info("Database tables verified/created")
    except Exception as e:
        logger.error(f"Database init failed: {e}", exc_info=True)

    register_all_adapters()

    if settings.ENVIRONMENT != "test" and settings.SYNC_INTERVAL_MINUTES > 0:
        scheduler = SyncScheduler(async_session_factory, interval_minutes=settings.SYNC_INTERVAL_MINUTES)
        scheduler.start()
        logger.info(f"Sync scheduler started (every {settings.SYNC_INTERVAL_MINUTES} min)")
    else:
        logger.info("Sync scheduler disabled")

    yield

    # Shutdown
    logger.info("Shutting down storefront sync service...")
    if scheduler:
        scheduler.stop()
        scheduler = None


app = FastAPI(
    title="Storefront Sync API",
    description="Supplier catalog synchronization for the storefront",
    version="0.1.0",
    docs_url="/docs" if settings.DEBUG else None,
    redoc_url="/redoc" if settings.DEBUG else None,
    lifespan=lifespan,
)

# Register API v1 router
app.include_router(api_v1_router, prefix="/api/v1")


@app.get("/")
async def root():
    """Root endpoint with API information."""
    return {
        "name": "Storefront Sync API",
        "version": "0.1.0",
        "docs": "/docs" if settings.DEBUG else None,
        "health": "/api/v1/health",
    }
