"""
Health Check Endpoints

Provides health and readiness checks for orchestration systems.
"""

from datetime import datetime, timezone
from typing import Any, Dict

from fastapi import APIRouter, Depends, Response
from pydantic import BaseModel

from reconciler.config import get_settings
from reconciler.serving.api.dependencies import get_store
from reconciler.storage import CatalogStore

router = APIRouter()


class HealthResponse(BaseModel):
    """Health check response"""
    status: str
    version: str
    environment: str
    timestamp: datetime
    checks: Dict[str, Any]


@router.get("/health", response_model=HealthResponse)
async def health_check(store: CatalogStore = Depends(get_store)) -> HealthResponse:
    """
    Health check endpoint.

    Checks:
    - Application status
    - Catalog store reachability and whether a catalog is stored
    """
    settings = get_settings()
    checks: Dict[str, Any] = {}
    overall_status = "healthy"

    try:
        catalog = await store.load(refresh=True)
        checks["store"] = {
            "status": "healthy",
            "backend": store.backend.name,
            "catalog": "present" if catalog is not None else "absent",
        }
        if catalog is not None:
            checks["store"]["products"] = catalog.stats.total
            checks["store"]["fingerprint"] = catalog.composition_fingerprint
    except Exception as e:
        checks["store"] = {"status": "unhealthy", "backend": store.backend.name, "error": str(e)}
        overall_status = "degraded"

    return HealthResponse(
        status=overall_status,
        version=settings.version,
        environment=settings.app_env,
        timestamp=datetime.now(timezone.utc),
        checks=checks,
    )


@router.get("/health/live")
async def liveness_check() -> Dict[str, str]:
    """Returns 200 if the application is running."""
    return {"status": "alive"}


@router.get("/health/ready")
async def readiness_check(response: Response, store: CatalogStore = Depends(get_store)) -> Dict[str, str]:
    """Returns 200 once a unified catalog is available for decomposition."""
    try:
        catalog = await store.load(refresh=True)
    except Exception as e:
        response.status_code = 503
        return {"status": "not_ready", "reason": str(e)}

    if catalog is None:
        response.status_code = 503
        return {"status": "not_ready", "reason": "catalog_missing"}
    return {"status": "ready"}
