from __future__ import annotations

from typing import Any, Dict

from fastapi import APIRouter, Depends
from redis.asyncio import Redis
from sqlalchemy.ext.asyncio import AsyncSession

from ...core.config import Settings
from ...core.errors import ValidationError
from ...core.security import require_user
from ...lastfm.client import LastfmClient
from ...schemas.common import success
from ...schemas.recommend import DayMixRequest, DayMixResponse, RecommendationBundle, RecommendRequest
from ...services.daymix import generate_day_mix
from ...services.favorites import list_favorites
from ...services.recommendations import build_recommendations
from ...spotify.auth import SpotifyAccountsClient
from ..deps import (
    SpotifyClientFactory,
    get_db_session,
    get_lastfm_client,
    get_redis_dep,
    get_settings_dep,
    get_spotify_accounts,
    get_spotify_client_factory,
    user_spotify_client,
)

router = APIRouter(prefix="/v1", tags=["recommendations"])


@router.post("/recommendations")
async def create_recommendations(
    payload: RecommendRequest,
    *,
    session: AsyncSession = Depends(get_db_session),
    redis: Redis = Depends(get_redis_dep),
    lastfm: LastfmClient = Depends(get_lastfm_client),
    accounts: SpotifyAccountsClient = Depends(get_spotify_accounts),
    spotify_factory: SpotifyClientFactory = Depends(get_spotify_client_factory),
    settings: Settings = Depends(get_settings_dep),
) -> Dict[str, Any]:
    user = await require_user(session, payload.session_token)
    favorites = await list_favorites(session, user.id)
    if not favorites:
        return success(RecommendationBundle())

    async with user_spotify_client(
        session, user, accounts=accounts, factory=spotify_factory, settings=settings, redis=redis
    ) as spotify:
        bundle = await build_recommendations(favorites, lastfm=lastfm, spotify=spotify)
    return success(bundle)


@router.post("/daymix")
async def create_day_mix(
    payload: DayMixRequest,
    *,
    session: AsyncSession = Depends(get_db_session),
    lastfm: LastfmClient = Depends(get_lastfm_client),
) -> Dict[str, Any]:
    await require_user(session, payload.session_token)
    seed = payload.seed.strip()
    if not seed:
        raise ValidationError("Seed track is required.")
    tracks = await generate_day_mix(seed, lastfm=lastfm)
    return success(DayMixResponse(tracks=tracks))
