"""
School Directory Backend: Health Check Route
=============================================

What:  GET /health (and /api/health, the path the admin frontend polls)
       for load balancers and monitoring.
How:   SELECT 1 against the pool, plus the Gemini circuit breaker state and
       a model listing call.

Status levels:
    healthy:   database and Gemini reachable
    degraded:  database fine, Gemini unavailable (descriptions fail, CRUD works)
    unhealthy: database unreachable
"""

import logging
import time

from fastapi import APIRouter, Depends
from sqlalchemy import text

from app import __version__
from app.database import engine
from app.routes.schools import get_description_service
from app.schemas.school import HealthResponse
from app.services.gemini_service import CircuitBreaker
from app.services.llm_base import LLMService

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Health"])

_start_time = time.time()


@router.get(
    "/api/health",
    response_model=HealthResponse,
    summary="Service health check (API prefix alias)",
)
@router.get(
    "/health",
    response_model=HealthResponse,
    summary="Service health check",
)
async def health_check(
    describer: LLMService = Depends(get_description_service),
) -> HealthResponse:
    db_status = "connected"
    gemini_status = "available"
    overall = "healthy"

    try:
        async with engine.connect() as conn:
            await conn.execute(text("SELECT 1"))
    except Exception as e:
        db_status = "disconnected"
        overall = "unhealthy"
        logger.warning("Health check: database unreachable: %s", str(e))

    breaker = getattr(describer, "circuit_breaker", None)
    if breaker is not None and breaker.state == CircuitBreaker.OPEN:
        gemini_status = "circuit_open"
    elif not await describer.health_check():
        gemini_status = "unavailable"

    if gemini_status != "available" and overall == "healthy":
        overall = "degraded"

    return HealthResponse(
        status=overall,
        version=__version__,
        database=db_status,
        gemini=gemini_status,
        uptime_seconds=round(time.time() - _start_time, 2),
    )
