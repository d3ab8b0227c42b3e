import json

import redis.asyncio as redis
from courier.config import settings

_redis: redis.Redis | None = None

SESSION_KEY_PREFIX = "session:"
TOAST_QUEUE_PREFIX = "notifications:toasts:"


async def get_redis() -> redis.Redis:
    global _redis
    if _redis is None:
        _redis = redis.from_url(settings.redis_url, decode_responses=True)
    return _redis


async def close_redis() -> None:
    global _redis
    if _redis is not None:
        await _redis.aclose()
        _redis = None


async def check_idempotency(key: str, ttl_seconds: int = 86400, refresh: bool = False) -> bool:
    """
    Returns True if this key was already seen (duplicate) -> caller should skip.
    Returns False if key is new; the key is now set and the caller owns the work.
    Uses SET NX: set if not exists. With refresh=True a duplicate also gets its
    expiry pushed out, so the key lives as long as it keeps being checked.
    """
    r = await get_redis()
    was_set = await r.set(key, "1", nx=True, ex=ttl_seconds)
    if not was_set and refresh:
        await r.expire(key, ttl_seconds)
    return not was_set


async def register_session(user_id: str, token: str) -> None:
    """
    Keep the user's feed in the worker's poll set for session_ttl_seconds.
    The token is only rewritten when it changed; otherwise just the expiry moves.
    """
    r = await get_redis()
    key = f"{SESSION_KEY_PREFIX}{user_id}"
    if await r.get(key) == token:
        await r.expire(key, settings.session_ttl_seconds)
        return
    await r.set(key, token, ex=settings.session_ttl_seconds)


async def active_sessions() -> dict[str, str]:
    """user_id -> bearer token for every session still inside its TTL."""
    r = await get_redis()
    sessions: dict[str, str] = {}
    async for key in r.scan_iter(match=f"{SESSION_KEY_PREFIX}*"):
        token = await r.get(key)
        if token:
            sessions[key[len(SESSION_KEY_PREFIX):]] = token
    return sessions


async def push_toast(user_id: str, toast: dict) -> None:
    """Queue a toast; only the newest toast_queue_max_length are kept, and an undrained queue expires."""
    r = await get_redis()
    key = f"{TOAST_QUEUE_PREFIX}{user_id}"
    async with r.pipeline(transaction=True) as pipe:
        pipe.lpush(key, json.dumps(toast))
        pipe.ltrim(key, 0, settings.toast_queue_max_length - 1)
        pipe.expire(key, settings.toast_ttl_seconds)
        await pipe.execute()


async def pop_toasts(user_id: str, limit: int = 50) -> list[dict]:
    """Drain up to `limit` queued toasts, oldest first."""
    r = await get_redis()
    key = f"{TOAST_QUEUE_PREFIX}{user_id}"
    toasts = []
    for _ in range(limit):
        raw = await r.rpop(key)
        if raw is None:
            break
        toasts.append(json.loads(raw))
    return toasts
