from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import List

import pytest

pytest.importorskip("aiosqlite")

from sqlalchemy import update

from musicmap.core.config import Settings
from musicmap.db import models
from musicmap.services import spotify_tokens
from musicmap.services.spotify_tokens import ensure_spotify_token, token_is_fresh
from musicmap.spotify.auth import SpotifyTokenError, TokenGrant


@dataclass(slots=True)
class _StubAccounts:
    grant: TokenGrant | None = None
    configured: bool = True
    refreshed_with: List[str] = field(default_factory=list)

    async def refresh(self, refresh_token: str) -> TokenGrant:
        self.refreshed_with.append(refresh_token)
        if self.grant is None:
            raise SpotifyTokenError("token request failed: 400 invalid_grant")
        return self.grant


def _settings() -> Settings:
    return Settings(spotify_token_margin_seconds=300)


async def _linked_user(
    session, *, expires_in: timedelta, refresh_token: str | None = "refresh-1", username: str = "ana"
) -> models.User:
    user = models.User(
        username=username,
        email=f"{username}@example.com",
        password_hash="x",
        spotify_user_id=f"spotify-{username}",
        spotify_access_token="old-access",
        spotify_refresh_token=refresh_token,
        spotify_token_expires_at=datetime.now(timezone.utc) + expires_in,
    )
    session.add(user)
    await session.commit()
    return user


def test_token_freshness_respects_margin() -> None:
    now = datetime(2024, 1, 1, tzinfo=timezone.utc)
    user = models.User(spotify_access_token="a", spotify_token_expires_at=now + timedelta(seconds=400))
    assert token_is_fresh(user, margin_seconds=300, now=now)
    assert not token_is_fresh(user, margin_seconds=300, now=now + timedelta(seconds=101))
    # naive timestamps are read back from sqlite as utc
    user.spotify_token_expires_at = (now + timedelta(seconds=400)).replace(tzinfo=None)
    assert token_is_fresh(user, margin_seconds=300, now=now)
    assert not token_is_fresh(models.User(), margin_seconds=0, now=now)


def test_fresh_token_is_reused(temp_database, fake_redis) -> None:
    async def scenario() -> None:
        async with temp_database() as maker:
            async with maker() as session:
                user = await _linked_user(session, expires_in=timedelta(hours=1))
                accounts = _StubAccounts()
                token = await ensure_spotify_token(session, user, accounts, _settings(), redis=fake_redis)
                assert token == "old-access"
                assert accounts.refreshed_with == []

    asyncio.run(scenario())


def test_stale_token_is_refreshed_and_persisted(temp_database, fake_redis) -> None:
    async def scenario() -> None:
        async with temp_database() as maker:
            async with maker() as session:
                user = await _linked_user(session, expires_in=timedelta(minutes=2))
                accounts = _StubAccounts(grant=TokenGrant(access_token="new-access", expires_in=3600))
                token = await ensure_spotify_token(session, user, accounts, _settings(), redis=fake_redis)
                assert token == "new-access"
                assert accounts.refreshed_with == ["refresh-1"]
                # refresh response without a new refresh token keeps the old one
                assert user.spotify_refresh_token == "refresh-1"
                assert fake_redis.store == {}

            async with maker() as session:
                stored = await session.get(models.User, user.id)
                assert stored.spotify_access_token == "new-access"
                assert token_is_fresh(stored, margin_seconds=300)

    asyncio.run(scenario())


def test_refresh_failure_yields_no_token(temp_database, fake_redis) -> None:
    async def scenario() -> None:
        async with temp_database() as maker:
            async with maker() as session:
                user = await _linked_user(session, expires_in=timedelta(seconds=-10))
                token = await ensure_spotify_token(session, user, _StubAccounts(), _settings(), redis=fake_redis)
                assert token is None
                assert fake_redis.store == {}

                unlinked = await _linked_user(session, expires_in=timedelta(seconds=-10), refresh_token=None, username="bo")
                unlinked_accounts = _StubAccounts(grant=TokenGrant(access_token="never", expires_in=3600))
                assert await ensure_spotify_token(session, unlinked, unlinked_accounts, _settings()) is None
                assert unlinked_accounts.refreshed_with == []

    asyncio.run(scenario())


def test_concurrent_caller_waits_for_peer_refresh(temp_database, fake_redis, monkeypatch) -> None:
    monkeypatch.setattr(spotify_tokens, "REFRESH_WAIT_SECONDS", 0)

    async def scenario() -> None:
        async with temp_database() as maker:
            async with maker() as session:
                user = await _linked_user(session, expires_in=timedelta(seconds=-10))

            # a peer holds the lock and has already written the new token
            await fake_redis.set(f"musicmap:spotify-refresh:{user.id}", "1", nx=True, ex=30)
            async with maker() as peer:
                await peer.execute(
                    update(models.User)
                    .where(models.User.id == user.id)
                    .values(
                        spotify_access_token="peer-access",
                        spotify_token_expires_at=datetime.now(timezone.utc) + timedelta(hours=1),
                    )
                )
                await peer.commit()

            async with maker() as session:
                session.add(user)
                accounts = _StubAccounts(grant=TokenGrant(access_token="dup", expires_in=3600))
                token = await ensure_spotify_token(session, user, accounts, _settings(), redis=fake_redis)
                assert token == "peer-access"
                assert accounts.refreshed_with == []

    asyncio.run(scenario())
