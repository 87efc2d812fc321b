from __future__ import annotations

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Callable

from fastapi import Depends
from redis.asyncio import Redis
from sqlalchemy.ext.asyncio import AsyncSession

from ..cache.redis import get_redis
from ..core.config import Settings, get_settings
from ..db import models
from ..db.session import get_session
from ..lastfm.client import LastfmClient
from ..services.spotify_tokens import ensure_spotify_token
from ..spotify.auth import SpotifyAccountsClient
from ..spotify.client import SpotifyClient

SpotifyClientFactory = Callable[[str], SpotifyClient]


async def get_settings_dep() -> Settings:
    return get_settings()


async def get_db_session() -> AsyncIterator[AsyncSession]:
    async for session in get_session():
        yield session


async def get_redis_dep() -> AsyncIterator[Redis]:
    async for client in get_redis():
        yield client


async def get_lastfm_client(settings: Settings = Depends(get_settings_dep)) -> AsyncIterator[LastfmClient]:
    client = LastfmClient(api_key=settings.lastfm_api_key, timeout=settings.http_timeout_seconds)
    try:
        yield client
    finally:
        await client.close()


async def get_spotify_accounts(settings: Settings = Depends(get_settings_dep)) -> AsyncIterator[SpotifyAccountsClient]:
    client = SpotifyAccountsClient.from_settings(settings)
    try:
        yield client
    finally:
        await client.close()


async def get_spotify_client_factory(settings: Settings = Depends(get_settings_dep)) -> SpotifyClientFactory:
    def factory(access_token: str) -> SpotifyClient:
        return SpotifyClient(access_token=access_token, timeout=settings.http_timeout_seconds)

    return factory


@asynccontextmanager
async def user_spotify_client(
    session: AsyncSession,
    user: models.User,
    *,
    accounts: SpotifyAccountsClient,
    factory: SpotifyClientFactory,
    settings: Settings,
    redis: Redis | None = None,
) -> AsyncIterator[SpotifyClient | None]:
    """Yield a Spotify client for ``user``, or ``None`` when no usable token exists."""
    token = await ensure_spotify_token(session, user, accounts, settings, redis=redis)
    if token is None:
        yield None
        return
    client = factory(token)
    try:
        yield client
    finally:
        await client.close()
