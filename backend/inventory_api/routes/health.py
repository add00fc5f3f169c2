"""
Product Inventory API — Welcome and Health Routes
====================================================

What:  GET / (welcome message) and GET /health (dependency probe).
Who:   The welcome route is the API's landing response; the health route is
       called by load balancers, container health checks and uptime monitors.

Status levels:
    - healthy:   MongoDB answers a ping (HTTP 200)
    - unhealthy: MongoDB unreachable (HTTP 503)
"""

import logging
import time

from fastapi import APIRouter, Depends, Response

from inventory_api import __version__
from inventory_api.database import ConnectionManager, get_connection_manager
from inventory_api.schemas.product import HealthResponse, MessageResponse

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Health"])

_start_time = time.time()


@router.get("/", response_model=MessageResponse, summary="Welcome message")
async def welcome() -> MessageResponse:
    return MessageResponse(message="Welcome to the Product Inventory API")


@router.get(
    "/health",
    response_model=HealthResponse,
    responses={503: {"description": "Database unreachable", "model": HealthResponse}},
    summary="Service health check",
)
async def health_check(
    response: Response,
    connections: ConnectionManager = Depends(get_connection_manager),
) -> HealthResponse:
    """
    Pings MongoDB through the shared connection manager. A cold instance
    connects here, so the first probe also warms the cache.
    """
    if await connections.ping():
        status, database = "healthy", "connected"
    else:
        status, database = "unhealthy", "disconnected"
        response.status_code = 503
        logger.warning("Health check: database unreachable")

    return HealthResponse(
        status=status,
        version=__version__,
        database=database,
        uptime_seconds=round(time.time() - _start_time, 2),
    )
