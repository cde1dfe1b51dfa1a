from __future__ import annotations
import logging
import redis.asyncio as redis
from redis.exceptions import RedisError
from .config import get_settings

logger = logging.getLogger(__name__)
_settings = get_settings()
_r: redis.Redis | None = None

def get_redis() -> redis.Redis:
    global _r
    if _r is None:
        _r = redis.from_url(_settings.redis_url, decode_responses=True)
    return _r

async def ping_redis() -> bool:
    try:
        r = get_redis()
        pong = await r.ping()
        return bool(pong)
    except RedisError as exc:
        logger.warning("redis ping failed: %s", exc)
        return False

# ---- Simple fixed-window rate limit per caller/route ----
async def allow_request(subject: str, route_key: str) -> bool:
    """
    Fixed window: increment a counter key; allow if <= max.
    Fails open when Redis is unreachable; the limiter only guards against
    scan floods and never decides whether a check-in is valid.
    """
    if not _settings.rl_enabled:
        return True
    r = get_redis()
    key = f"rl:{route_key}:{subject}"
    try:
        # the window starts with the key; later hits must not push the TTL out
        pipe = r.pipeline()
        pipe.set(key, 0, ex=_settings.rl_window_seconds, nx=True)
        pipe.incr(key)
        _, count = await pipe.execute()
    except RedisError as exc:
        logger.warning("rate limiter unavailable, allowing %s: %s", route_key, exc)
        return True
    return int(count) <= _settings.rl_max_reqs
