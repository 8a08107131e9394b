from fastapi import APIRouter, Depends

from lendmarket.api.deps import get_database
from lendmarket.core.health import (
    health_payload,
    live_payload,
    ready_payload,
    status_summary_payload,
)
from lendmarket.core.limiter import limiter
from lendmarket.db.session import Database

router = APIRouter(tags=["health"])


@router.get("/health/live", summary="Service liveness check")
@limiter.exempt
async def health_live() -> dict:
    return await live_payload()


@router.get("/health/ready", summary="Service readiness check")
@limiter.exempt
async def health_ready(database: Database = Depends(get_database)) -> dict:
    return await ready_payload(database)


@router.get("/health", summary="Readiness check")
@limiter.exempt
async def read_health(database: Database = Depends(get_database)) -> dict:
    return await health_payload(database)


@router.get("/status/summary", tags=["status"], summary="Service status summary")
@limiter.exempt
async def status_summary(database: Database = Depends(get_database)) -> dict:
    return await status_summary_payload(database)
