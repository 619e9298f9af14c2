"""Redis-backed rate limiting dependency with an in-process fallback."""

from __future__ import annotations

import asyncio
import logging
import time
from typing import Callable, Dict, Optional, Tuple

from fastapi import Depends, HTTPException, Request
import redis.asyncio as redis

from config import settings
from routers.auth_scope import AuthContext, get_optional_auth_context

logger = logging.getLogger(__name__)

_local_counters: Dict[str, Tuple[int, float]] = {}
_local_lock = asyncio.Lock()


def _client_identifier(request: Request) -> str:
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded and settings.TRUST_FORWARDED_FOR:
        return forwarded.split(",")[0].strip()
    if request.client and request.client.host:
        return request.client.host
    return "unknown"


async def _consume_local_quota(key: str, limit: int, window_seconds: int) -> bool:
    now = time.time()
    async with _local_lock:
        count, reset_at = _local_counters.get(key, (0, now + window_seconds))
        if now >= reset_at:
            count = 0
            reset_at = now + window_seconds
        count += 1
        _local_counters[key] = (count, reset_at)
        return count <= limit


def rate_limit(prefix: str, limit: int, window_seconds: int) -> Callable[..., None]:
    """Return a dependency enforcing quotas per signed-in member, or per client address."""

    async def _dependency(
        request: Request,
        auth: Optional[AuthContext] = Depends(get_optional_auth_context),
    ):
        if getattr(request.app.state, "disable_rate_limits", False):
            return

        subject = f"user:{auth.user_id}" if auth else f"ip:{_client_identifier(request)}"
        key = f"moai:rate:{prefix}:{subject}"

        try:
            redis_client = redis.from_url(settings.REDIS_URL, decode_responses=True)
            try:
                current = await redis_client.incr(key)
                if current == 1:
                    await redis_client.expire(key, window_seconds)
            finally:
                await redis_client.aclose()
            allowed = current <= limit
        except Exception as exc:
            logger.debug("Redis rate limit unavailable (%s); using local counters", exc)
            allowed = await _consume_local_quota(key, limit, window_seconds)

        if not allowed:
            raise HTTPException(
                status_code=429,
                detail=f"Rate limit exceeded for {prefix}. Try again later.",
            )

    return _dependency
