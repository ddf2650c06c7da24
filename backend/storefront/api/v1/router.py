"""API v1 router -- aggregates all v1 endpoint routers."""

from fastapi import APIRouter

from storefront.api.v1 import health, sync

api_v1_router = APIRouter()

api_v1_router.include_router(health.router, tags=["health"])
api_v1_router.include_router(sync.router, prefix="/sync", tags=["sync"])
