from __future__ import annotations

import asyncio
from datetime import datetime, timezone
from typing import Any

from redis.exceptions import RedisError
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from lendmarket import __version__
from lendmarket.core.settings import settings
from lendmarket.db.session import Database
from lendmarket.utils.redis_client import get_redis_client


async def _check_db(database: Database) -> dict[str, str]:
    try:
        async with database.engine.connect() as conn:
            await conn.execute(text("SELECT 1"))
        return {"status": "ok"}
    except (SQLAlchemyError, OSError, RuntimeError, asyncio.TimeoutError) as exc:
        return {"status": "error", "error": str(exc)}


async def _check_redis() -> dict[str, str]:
    try:
        redis = get_redis_client()
        await redis.ping()
        return {"status": "ok"}
    except (RedisError, OSError) as exc:
        return {"status": "error", "error": str(exc)}


async def _check_api() -> dict[str, str]:
    return {"status": "ok", "version": __version__}


def _overall_status(checks: dict[str, dict[str, Any]]) -> tuple[str, bool]:
    ready = all(check.get("status") == "ok" for check in checks.values())
    return ("ok" if ready else "degraded", ready)


def _timestamp() -> str:
    return datetime.now(timezone.utc).isoformat()


async def _run_checks(database: Database) -> dict[str, dict[str, str]]:
    return {
        "api": await _check_api(),
        "database": await _check_db(database),
        "redis": await _check_redis(),
    }


async def live_payload() -> dict[str, str]:
    return {"status": "ok", "timestamp": _timestamp()}


async def ready_payload(database: Database) -> dict[str, Any]:
    checks = await _run_checks(database)
    overall, ready = _overall_status(checks)
    return {
        "status": overall,
        "ready": ready,
        "environment": settings.environment,
        "timestamp": _timestamp(),
        "checks": checks,
    }


async def status_summary_payload(database: Database) -> dict[str, Any]:
    payload = await ready_payload(database)
    payload["version"] = __version__
    return payload


async def health_payload(database: Database) -> dict[str, Any]:
    return await ready_payload(database)
