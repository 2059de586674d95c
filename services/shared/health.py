"""Endpoints /health e /ready para monitoramento (Docker/Kubernetes)."""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Optional

import redis
from fastapi import APIRouter, status
from fastapi.responses import JSONResponse
from sqlalchemy import text
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError

logger = logging.getLogger(__name__)


def _timestamp() -> str:
    return datetime.now(timezone.utc).isoformat()


def check_database_health(engine: Optional[Engine]) -> bool:
    """True se um ``SELECT 1`` passa."""
    if engine is None:
        return False
    try:
        with engine.connect() as conn:
            conn.execute(text("SELECT 1")).fetchone()
        return True
    except SQLAlchemyError:
        logger.warning("Banco indisponível no health check", exc_info=True)
        return False


def check_redis_health(client: Optional[redis.Redis]) -> Optional[bool]:
    """True/False quando o Redis está configurado; None quando não está."""
    if client is None:
        return None
    try:
        return bool(client.ping())
    except redis.RedisError:
        logger.warning("Redis indisponível no health check", exc_info=True)
        return False


def create_health_router(
    service_name: str,
    database_engine: Optional[Engine] = None,
    redis_client: Optional[redis.Redis] = None,
) -> APIRouter:
    router = APIRouter(tags=["Health"])

    @router.get("/health", status_code=status.HTTP_200_OK)
    def health():
        """Liveness: 200 enquanto o processo responde; não olha dependências."""
        return {"status": "ok", "service": service_name, "timestamp": _timestamp()}

    @router.get("/ready")
    def ready():
        """Readiness: banco obrigatório, Redis só quando configurado."""
        checks = {
            "database": check_database_health(database_engine),
            "redis": check_redis_health(redis_client),
        }
        healthy = checks["database"] and checks["redis"] is not False
        return JSONResponse(
            status_code=status.HTTP_200_OK if healthy else status.HTTP_503_SERVICE_UNAVAILABLE,
            content={
                "status": "ready" if healthy else "not_ready",
                "service": service_name,
                "timestamp": _timestamp(),
                "checks": checks,
            },
        )

    return router
