"""
Health check endpoints for Kubernetes probes.
"""

import logging

from fastapi import APIRouter, status
from fastapi.responses import JSONResponse

from gateway.dependencies import Snapshots

logger = logging.getLogger(__name__)
router = APIRouter()


@router.get("/health")
async def health_check():
    """
    Liveness probe endpoint.

    Returns 200 if the service is running.
    """
    return {"status": "ok"}


@router.get("/ready")
async def readiness_check(snapshots: Snapshots):
    """
    Readiness probe endpoint.

    Reports whether a configuration snapshot is loaded.

    Returns:
        Agent and tier counts of the current snapshot, or 503 when the
        snapshot has no agents.
    """
    snapshot = snapshots.current()
    body = {
        "status": "ok" if snapshot.agents else "unavailable",
        "agents": len(snapshot.agents),
        "tiers": len(snapshot.tiers),
    }
    if not snapshot.agents:
        logger.error("❌ Readiness failed: no agents loaded")
        return JSONResponse(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, content=body)
    return body
