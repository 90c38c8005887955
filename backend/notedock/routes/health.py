"""
NoteDock Backend - Health Check Route
======================================

What:  Liveness/readiness probe for orchestrators and load balancers.
How:   SELECT 1 against the database plus the embedding provider's
       self-reported state. No embedding call is made.

Status levels:
    healthy:   database connected, embeddings available
    degraded:  database connected, embeddings unconfigured or circuit open
               (notes still save; search is lexical only)
    unhealthy: database unreachable (HTTP 503)
"""

import logging
import time

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from sqlalchemy import text

from notedock import __version__
from notedock.database import engine
from notedock.dependencies import get_embedding_provider
from notedock.schemas.note import HealthResponse
from notedock.services.embedding_base import EmbeddingProvider

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Health"])

_start_time = time.time()


@router.get(
    "/health",
    response_model=HealthResponse,
    summary="Service health check",
    responses={503: {"description": "Database unreachable", "model": HealthResponse}},
)
async def health_check(
    embedder: EmbeddingProvider = Depends(get_embedding_provider),
):
    db_status = "connected"
    overall = "healthy"

    try:
        async with engine.connect() as conn:
            await conn.execute(text("SELECT 1"))
    except Exception as e:
        db_status = "disconnected"
        overall = "unhealthy"
        logger.warning("Health check: database unreachable: %s", str(e))

    embeddings = embedder.status()
    if embeddings != "available" and overall == "healthy":
        overall = "degraded"

    body = HealthResponse(
        status=overall,
        version=__version__,
        database=db_status,
        embeddings=embeddings,
        uptime_seconds=round(time.time() - _start_time, 2),
    )
    if overall == "unhealthy":
        return JSONResponse(status_code=503, content=body.model_dump())
    return body
