from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timedelta, timezone

from redis.asyncio import Redis
from redis.exceptions import RedisError
from sqlalchemy.ext.asyncio import AsyncSession

from ..cache.redis import acquire_lock, release_lock
from ..core.config import Settings
from ..db import models
from ..spotify.auth import SpotifyAccountsClient, SpotifyTokenError

logger = logging.getLogger("spotify.tokens")

REFRESH_LOCK_TTL = 30
REFRESH_WAIT_ATTEMPTS = 10
REFRESH_WAIT_SECONDS = 0.3

_TOKEN_COLUMNS = ["spotify_access_token", "spotify_refresh_token", "spotify_token_expires_at"]


def _as_utc(value: datetime) -> datetime:
    # SQLite hands back naive datetimes; they were written as UTC
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def token_is_fresh(user: models.User, *, margin_seconds: int, now: datetime | None = None) -> bool:
    if not user.spotify_access_token or user.spotify_token_expires_at is None:
        return False
    current = now or datetime.now(timezone.utc)
    return current < _as_utc(user.spotify_token_expires_at) - timedelta(seconds=margin_seconds)


async def store_grant(
    session: AsyncSession,
    user: models.User,
    *,
    access_token: str,
    expires_in: int,
    refresh_token: str | None = None,
) -> None:
    user.spotify_access_token = access_token
    user.spotify_token_expires_at = datetime.now(timezone.utc) + timedelta(seconds=expires_in)
    if refresh_token:
        user.spotify_refresh_token = refresh_token
    await session.commit()


async def _wait_for_peer_refresh(session: AsyncSession, user: models.User, margin: int) -> str | None:
    for _ in range(REFRESH_WAIT_ATTEMPTS):
        await asyncio.sleep(REFRESH_WAIT_SECONDS)
        await session.refresh(user, attribute_names=_TOKEN_COLUMNS)
        if token_is_fresh(user, margin_seconds=margin):
            return user.spotify_access_token
    logger.warning("Timed out waiting for concurrent spotify refresh for user %s", user.id)
    return None


async def ensure_spotify_token(
    session: AsyncSession,
    user: models.User,
    accounts: SpotifyAccountsClient,
    settings: Settings,
    *,
    redis: Redis | None = None,
) -> str | None:
    """Return a usable Spotify access token for ``user`` or ``None``.

    The stored token is reused until it is within the configured margin of its
    expiry; after that it is refreshed once and persisted. Concurrent callers
    for the same user share one refresh through a Redis lock.
    """
    margin = settings.spotify_token_margin_seconds
    if token_is_fresh(user, margin_seconds=margin):
        return user.spotify_access_token
    if not user.spotify_refresh_token or not accounts.configured:
        return None

    lock_key = f"musicmap:spotify-refresh:{user.id}"
    locked = False
    if redis is not None:
        try:
            locked = await acquire_lock(redis, lock_key, ttl=REFRESH_LOCK_TTL)
        except RedisError as exc:
            logger.warning("Refresh lock unavailable, refreshing unguarded: %s", exc)
        else:
            if not locked:
                return await _wait_for_peer_refresh(session, user, margin)

    try:
        # A peer may have finished between our staleness check and the lock
        if locked:
            await session.refresh(user, attribute_names=_TOKEN_COLUMNS)
            if token_is_fresh(user, margin_seconds=margin):
                return user.spotify_access_token
        try:
            grant = await accounts.refresh(user.spotify_refresh_token)
        except SpotifyTokenError as exc:
            logger.warning("Spotify token refresh failed for user %s: %s", user.id, exc)
            return None
        await store_grant(
            session,
            user,
            access_token=grant.access_token,
            expires_in=grant.expires_in,
            refresh_token=grant.refresh_token,
        )
        return grant.access_token
    finally:
        if locked and redis is not None:
            try:
                await release_lock(redis, lock_key)
            except RedisError as exc:
                logger.warning("Failed to release refresh lock %s: %s", lock_key, exc)
