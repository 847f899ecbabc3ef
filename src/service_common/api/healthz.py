"""
Health check endpoint.

- /healthz: Liveness probe (always 200 if service alive)
"""

from datetime import datetime, timezone
from typing import Any, Dict

import structlog
from fastapi import APIRouter, Request

from .. import __version__

logger = structlog.get_logger(__name__)

router = APIRouter()


@router.get(
    "/healthz",
    status_code=200,
    summary="Liveness probe",
    description="""
    Liveness probe endpoint.

    Always returns 200 OK if the service is running.
    Used by Kubernetes/Docker health checks to determine if container should be restarted.
    """,
)
async def liveness_check(request: Request) -> Dict[str, Any]:
    """
    Liveness probe - always returns 200 if service is alive.
    """
    settings = getattr(request.app.state, "service_common_settings", None)
    return {
        "status": "alive",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "service": settings.service_name if settings else "service",
        "version": __version__,
    }
