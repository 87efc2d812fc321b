from __future__ import annotations

import logging
import secrets
from typing import Optional

from fastapi import APIRouter, Depends, Query, status
from fastapi.responses import RedirectResponse
from redis.asyncio import Redis
from sqlalchemy.ext.asyncio import AsyncSession

from ...cache.redis import pop_oauth_state, store_oauth_state
from ...core.config import Settings
from ...core.errors import ExternalServiceError
from ...core.security import get_user_by_token, require_user
from ...services.accounts import link_spotify_account
from ...spotify.auth import SpotifyAccountsClient, SpotifyTokenError
from ...spotify.client import SpotifyClientError
from ..deps import (
    SpotifyClientFactory,
    get_db_session,
    get_redis_dep,
    get_settings_dep,
    get_spotify_accounts,
    get_spotify_client_factory,
)

logger = logging.getLogger("spotify.link")

router = APIRouter(prefix="/v1/spotify", tags=["spotify"])


def _back_to_site(settings: Settings, error: str | None = None) -> RedirectResponse:
    url = f"{settings.site_url}/"
    if error:
        url = f"{url}?error={error}"
    return RedirectResponse(url, status_code=status.HTTP_302_FOUND)


@router.get("/authorize")
async def authorize(
    token: str = Query(""),
    *,
    session: AsyncSession = Depends(get_db_session),
    redis: Redis = Depends(get_redis_dep),
    accounts: SpotifyAccountsClient = Depends(get_spotify_accounts),
    settings: Settings = Depends(get_settings_dep),
) -> RedirectResponse:
    user = await require_user(session, token)
    if not accounts.configured:
        raise ExternalServiceError("Spotify integration is not configured.")
    nonce = secrets.token_hex(16)
    await store_oauth_state(redis, nonce, user.session_token or token, ttl=settings.oauth_state_ttl_seconds)
    return RedirectResponse(accounts.authorize_url(nonce), status_code=status.HTTP_302_FOUND)


@router.get("/callback")
async def callback(
    code: Optional[str] = Query(None),
    state: Optional[str] = Query(None),
    *,
    session: AsyncSession = Depends(get_db_session),
    redis: Redis = Depends(get_redis_dep),
    accounts: SpotifyAccountsClient = Depends(get_spotify_accounts),
    spotify_factory: SpotifyClientFactory = Depends(get_spotify_client_factory),
    settings: Settings = Depends(get_settings_dep),
) -> RedirectResponse:
    session_token = await pop_oauth_state(redis, state) if state else None
    if not session_token:
        return _back_to_site(settings, "state_mismatch")
    if not code:
        return _back_to_site(settings, "auth_failed")

    try:
        grant = await accounts.exchange_code(code)
    except SpotifyTokenError as exc:
        logger.warning("Spotify code exchange failed: %s", exc)
        return _back_to_site(settings, "token_failed")

    spotify = spotify_factory(grant.access_token)
    try:
        spotify_profile = await spotify.get_current_user()
    except SpotifyClientError as exc:
        logger.warning("Spotify profile lookup failed: %s", exc)
        return _back_to_site(settings, "token_failed")
    finally:
        await spotify.close()

    user = await get_user_by_token(session, session_token)
    if user is not None and spotify_profile.get("id"):
        await link_spotify_account(session, user, grant=grant, spotify_profile=spotify_profile)
    return _back_to_site(settings)
