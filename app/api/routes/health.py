"""
Liveness and readiness. Readiness covers the stores settlement depends on:
the database (idempotency key, entitlements) and Redis (rate limit, breaker state).
The payment gateway is not probed; its outages surface through the circuit breaker.
"""
import logging

import redis
from fastapi import APIRouter, Depends, Response
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.api.deps import get_redis
from app.db.session import get_db

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("/health")
def health() -> dict:
    return {"status": "ok"}


@router.get("/ready")
def readiness(
    response: Response,
    db: Session = Depends(get_db),
    redis_client: redis.Redis = Depends(get_redis),
) -> dict:
    """503 with per-dependency status if any store is unavailable."""
    checks: dict[str, str] = {}
    try:
        db.execute(text("SELECT 1"))
        checks["database"] = "ok"
    except SQLAlchemyError as e:
        checks["database"] = "unavailable"
        logger.warning("readiness_database_failed", extra={"error": str(e)})
    try:
        redis_client.ping()
        checks["redis"] = "ok"
    except redis.RedisError as e:
        checks["redis"] = "unavailable"
        logger.warning("readiness_redis_failed", extra={"error": str(e)})

    ready = all(v == "ok" for v in checks.values())
    if not ready:
        response.status_code = 503
    return {"status": "ready" if ready else "not_ready", "checks": checks}
