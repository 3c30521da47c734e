"""
Health Check Endpoints

Liveness, readiness and a detailed check covering the database and the
discount fact store.
"""

from datetime import datetime, timezone
from typing import Any, Dict

from fastapi import APIRouter, Depends, Response
from pydantic import BaseModel

from discount_analytics.context import AppContext
from discount_analytics.database.connection import check_database_health
from discount_analytics.serving.api.dependencies import get_context

router = APIRouter()


class HealthResponse(BaseModel):
    """Health check response"""
    status: str
    version: str
    environment: str
    timestamp: datetime
    checks: Dict[str, Any]


@router.get("/health", response_model=HealthResponse)
async def health_check(context: AppContext = Depends(get_context)) -> HealthResponse:
    """
    Checks:
    - Database connectivity
    - Fact store provisioning and schema version
    """
    checks = {}
    overall_status = "healthy"
    
    db_health = await check_database_health(context.session_factory)
    checks["database"] = db_health
    if db_health.get("status") != "healthy":
        overall_status = "unhealthy"
    else:
        provisioned = await context.store.is_provisioned()
        checks["fact_store"] = {
            "status": "provisioned" if provisioned else "legacy_fallback",
            "schema_version": await context.store.schema_version(),
            "history_source": (await context.reports.history_source()).value,
        }
        if not provisioned:
            overall_status = "degraded"
    
    return HealthResponse(
        status=overall_status,
        version=context.settings.version,
        environment=context.settings.app_env,
        timestamp=datetime.now(timezone.utc),
        checks=checks,
    )


@router.get("/health/live")
async def liveness_check() -> Dict[str, str]:
    """Returns 200 while the process is running"""
    return {"status": "alive"}


@router.get("/health/ready")
async def readiness_check(
    response: Response,
    context: AppContext = Depends(get_context),
) -> Dict[str, str]:
    """Returns 200 once the database answers"""
    db_health = await check_database_health(context.session_factory)
    if db_health.get("status") != "healthy":
        response.status_code = 503
        return {"status": "not_ready", "reason": "database_unavailable"}
    return {"status": "ready"}
