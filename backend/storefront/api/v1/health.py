"""Health check endpoint."""

from fastapi import APIRouter, Depends
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from storefront.dependencies import get_db
from storefront.schemas import HealthCheckResponse
from storefront.suppliers.factory import get_adapter_factory

router = APIRouter()


@router.get("/health", response_model=HealthCheckResponse)
async def health_check(db: AsyncSession = Depends(get_db)):
    """Return service health status.

    Checks database connectivity and lists the registered supplier adapters.
    """
    services = {}

    try:
        result = await db.execute(text("SELECT 1"))
        result.scalar()
        db_status = "ok"
    except Exception as e:
        db_status = f"error: {str(e)}"

    services["database"] = db_status

    suppliers = get_adapter_factory().get_registered_sources()
    services["suppliers"] = "ok" if suppliers else "error: no adapters registered"

    overall_status = "ok" if all(s == "ok" for s in services.values()) else "degraded"

    return HealthCheckResponse(
        status=overall_status,
        database=db_status,
        suppliers=suppliers,
        services=services,
    )
