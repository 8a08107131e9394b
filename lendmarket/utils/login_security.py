import logging

from fastapi import HTTPException, status
from redis.exceptions import RedisError

from lendmarket.core.settings import settings
from lendmarket.utils.redis_client import get_redis_client

logger = logging.getLogger(__name__)


def _ttl(seconds: int) -> int:
    return max(1, seconds)


async def rate_limit(key: str, limit: int, window_seconds: int) -> None:
    redis = get_redis_client()
    try:
        pipe = redis.pipeline()
        pipe.incr(f"rl:{key}")
        pipe.expire(f"rl:{key}", window_seconds)
        count, _ = await pipe.execute()
    except RedisError as exc:
        logger.warning("Login rate limit skipped; redis unavailable: %s", exc)
        return
    if count > limit:
        raise HTTPException(status_code=status.HTTP_429_TOO_MANY_REQUESTS, detail="Rate limit exceeded")


async def check_lockout(identifier: str) -> None:
    redis = get_redis_client()
    try:
        locked_until = await redis.get(f"lock:{identifier}")
    except RedisError as exc:
        logger.warning("Lockout check skipped; redis unavailable: %s", exc)
        return
    if locked_until:
        raise HTTPException(
            status_code=status.HTTP_429_TOO_MANY_REQUESTS,
            detail="Too many login attempts; try later",
        )


async def register_login_attempt(identifier: str, success: bool) -> None:
    redis = get_redis_client()
    fail_key = f"fail:{identifier}"
    lock_key = f"lock:{identifier}"
    try:
        if success:
            await redis.delete(fail_key, lock_key)
            return
        attempts = await redis.incr(fail_key)
        await redis.expire(fail_key, _ttl(settings.login_lockout_minutes * 60))
        if attempts >= settings.login_attempt_limit:
            await redis.setex(lock_key, _ttl(settings.login_lockout_minutes * 60), 1)
            await redis.delete(fail_key)
            logger.warning("Login locked out for %s after %s failures", identifier, attempts)
    except RedisError as exc:
        logger.warning("Login attempt not recorded; redis unavailable: %s", exc)
