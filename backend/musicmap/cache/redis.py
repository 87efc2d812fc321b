from __future__ import annotations

from collections.abc import AsyncIterator

from redis.asyncio import Redis

from ..core.config import get_settings

settings = get_settings()

redis = Redis.from_url(settings.redis_url, encoding="utf-8", decode_responses=True)

OAUTH_STATE_PREFIX = "musicmap:oauth-state:"


async def get_redis() -> AsyncIterator[Redis]:
    try:
        yield redis
    finally:
        # keep connection open for reuse; do not close
        pass


async def acquire_lock(client: Redis, key: str, *, ttl: int = 30) -> bool:
    return bool(await client.set(name=key, value="1", nx=True, ex=ttl))


async def release_lock(client: Redis, key: str) -> None:
    await client.delete(key)


async def store_oauth_state(client: Redis, nonce: str, session_token: str, *, ttl: int) -> None:
    await client.set(name=f"{OAUTH_STATE_PREFIX}{nonce}", value=session_token, ex=ttl)


async def pop_oauth_state(client: Redis, nonce: str) -> str | None:
    key = f"{OAUTH_STATE_PREFIX}{nonce}"
    value = await client.get(key)
    if value is not None:
        await client.delete(key)
    return value
