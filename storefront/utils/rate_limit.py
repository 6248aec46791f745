from fastapi import Depends, Request
from storefront.core.config import settings
from storefront.core.logging import log_security_event
from storefront.core.redis import get_redis
from storefront.utils.exceptions import TooManyRequestsError


async def check_rate_limit(redis_client, key: str, max_attempts: int, window_seconds: int) -> None:
    """
    Increment a Redis counter for `key` and raise 429 if `max_attempts` is exceeded
    within `window_seconds`.
    """
    count = await redis_client.incr(key)
    if count == 1:
        await redis_client.expire(key, window_seconds)
    if count > max_attempts:
        log_security_event("rate_limit_exceeded", severity="medium", key=key, attempts=count)
        raise TooManyRequestsError()


async def login_rate_limit(request: Request, redis_client=Depends(get_redis)) -> None:
    """Throttle credential endpoints per client address and route."""
    client = request.client.host if request.client else "unknown"
    key = f"login:{request.url.path}:{client}"
    await check_rate_limit(
        redis_client,
        key,
        settings.LOGIN_RATE_LIMIT_ATTEMPTS,
        settings.LOGIN_RATE_LIMIT_WINDOW_SECONDS,
    )
