"""
NoteForge Backend - Health Check Route
=======================================

GET /health

    healthy:   database reachable, provider reachable, circuit closed
    degraded:  database reachable, provider unreachable or circuit open
    unhealthy: database unreachable (HTTP 503)
"""

import logging
import time

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from noteforge import __version__
from noteforge.dependencies import ServiceContainer, get_services
from noteforge.schemas.content import HealthResponse
from noteforge.services.llm_base import CircuitBreaker

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Health"])

_start_time = time.time()


@router.get(
    "/health",
    response_model=HealthResponse,
    responses={503: {"description": "Database unreachable", "model": HealthResponse}},
    summary="Service health check",
)
async def health_check(services: ServiceContainer = Depends(get_services)):
    db_status = "connected"
    llm_status = "available"
    overall = "healthy"

    try:
        await services.database.ping()
    except Exception as e:
        db_status = "disconnected"
        overall = "unhealthy"
        logger.warning("Health check: database unreachable: %s", str(e))

    if services.summarization.circuit_breaker.state == CircuitBreaker.OPEN:
        llm_status = "circuit_open"
    elif not await services.llm.health_check():
        llm_status = "unavailable"
    if llm_status != "available" and overall == "healthy":
        overall = "degraded"

    body = HealthResponse(
        status=overall,
        version=__version__,
        database=db_status,
        llm=llm_status,
        provider=services.llm.name,
        uptime_seconds=round(time.time() - _start_time, 2),
    )
    if overall == "unhealthy":
        return JSONResponse(status_code=503, content=body.model_dump())
    return body
