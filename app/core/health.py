from __future__ import annotations

from datetime import datetime, timezone
from typing import Any

from redis.exceptions import RedisError
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from app.core.settings import settings
from app.db.session import engine
from app.services.broadcast import hub
from app.utils.redis_client import get_redis_client

APP_VERSION = "0.1.0"


async def _check_db() -> dict[str, str]:
    try:
        async with engine.connect() as conn:
            await conn.execute(text("SELECT 1"))
        return {"status": "ok"}
    except (SQLAlchemyError, OSError) as exc:
        return {"status": "error", "error": str(exc)}


async def _check_fanout() -> dict[str, str]:
    if settings.fanout_backend == "local":
        return {"status": "ok", "backend": "local"}
    try:
        await get_redis_client().ping()
        return {"status": "ok", "backend": "redis"}
    except (RedisError, OSError) as exc:
        return {"status": "error", "backend": "redis", "error": str(exc)}


def _overall_status(checks: dict[str, dict[str, Any]]) -> tuple[str, bool]:
    ready = all(check.get("status") == "ok" for check in checks.values())
    return ("ok" if ready else "degraded", ready)


async def live_payload() -> dict[str, Any]:
    return {
        "status": "ok",
        "version": APP_VERSION,
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }


async def ready_payload() -> dict[str, Any]:
    checks = {
        "database": await _check_db(),
        "fanout": await _check_fanout(),
    }
    overall, ready = _overall_status(checks)
    return {
        "status": overall,
        "ready": ready,
        "environment": settings.environment,
        "version": APP_VERSION,
        "sseConnections": len(hub),
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "checks": checks,
    }
