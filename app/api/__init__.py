"""
API package for the Krushi Mithra backend.

This package aggregates all API routers to be included in the FastAPI
application. The API is versioned under ``/api/v1``.
"""

from fastapi import APIRouter, Depends
from .v1.farmers import router as farmers_router
from .v1.farmer_portal import router as farmer_portal_router
from .v1.admin import router as admin_router
from .v1.admin_content import router as admin_content_router
from .v1.health import router as health_router
from ..core.rate_limit import rate_limit_dependency
from ..core.request_limits import enforce_json_body_limit

api_router = APIRouter()
guarded = [Depends(rate_limit_dependency), Depends(enforce_json_body_limit)]
api_router.include_router(farmers_router, dependencies=guarded)
api_router.include_router(farmer_portal_router, dependencies=guarded)
api_router.include_router(admin_router, dependencies=guarded)
api_router.include_router(admin_content_router, dependencies=guarded)
api_router.include_router(health_router)
