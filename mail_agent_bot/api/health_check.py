"""
Health Check Endpoints
Liveness plus a summary of relay configuration for Azure Container Apps probes.
"""
import logging
from datetime import datetime
from typing import Any, Dict

from fastapi import APIRouter, Request

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/health", tags=["health"])


@router.get("")
@router.get("/")
async def health_check() -> Dict[str, Any]:
    """Basic health check endpoint"""
    return {
        "status": "healthy",
        "timestamp": datetime.now().isoformat(),
        "service": "mail-agent-bot"
    }


@router.get("/detailed")
async def detailed_health_check(request: Request) -> Dict[str, Any]:
    """
    Detailed health check including relay configuration
    Reports degraded when the relay was not initialized or the Foundry endpoint is unset
    """
    health_report = {
        "timestamp": datetime.now().isoformat(),
        "service": "mail-agent-bot",
        "overall_status": "healthy",
        "components": {}
    }

    settings = getattr(request.app.state, "settings", None)
    relay = getattr(request.app.state, "relay", None)
    store = getattr(request.app.state, "pending_store", None)

    if settings is not None:
        health_report["components"]["agent_service"] = {
            "status": "configured" if settings.foundry_project_endpoint else "missing_endpoint",
            "agent_name": settings.foundry_agent_name,
            "environment": settings.environment,
        }
        if not settings.foundry_project_endpoint:
            health_report["overall_status"] = "degraded"

    if relay is None:
        health_report["components"]["relay"] = {"status": "not_initialized"}
        health_report["overall_status"] = "degraded"
    else:
        health_report["components"]["relay"] = {"status": "ready"}

    if store is not None:
        health_report["components"]["pending_authorizations"] = {
            "status": "ok",
            "count": len(store),
            "ttl_seconds": store.ttl_seconds,
        }

    return health_report
