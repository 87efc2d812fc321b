from __future__ import annotations

from typing import Any, Dict

from fastapi import APIRouter, Depends, status
from redis.asyncio import Redis
from sqlalchemy.ext.asyncio import AsyncSession

from ...core.config import Settings
from ...core.security import require_user
from ...schemas.common import success
from ...schemas.favorites import (
    FavoriteAddRequest,
    FavoriteListRequest,
    FavoriteMigrateRequest,
    FavoriteOut,
    FavoriteRemoveRequest,
)
from ...services import favorites as store
from ...services.recommendations import attach_cover_art
from ...spotify.auth import SpotifyAccountsClient
from ..deps import (
    SpotifyClientFactory,
    get_db_session,
    get_redis_dep,
    get_settings_dep,
    get_spotify_accounts,
    get_spotify_client_factory,
    user_spotify_client,
)

router = APIRouter(prefix="/v1/favorites", tags=["favorites"])


@router.post("/list")
async def list_favorites(
    payload: FavoriteListRequest,
    *,
    session: AsyncSession = Depends(get_db_session),
    redis: Redis = Depends(get_redis_dep),
    accounts: SpotifyAccountsClient = Depends(get_spotify_accounts),
    spotify_factory: SpotifyClientFactory = Depends(get_spotify_client_factory),
    settings: Settings = Depends(get_settings_dep),
) -> Dict[str, Any]:
    user = await require_user(session, payload.session_token)
    items = [FavoriteOut.model_validate(fav) for fav in await store.list_favorites(session, user.id)]
    if items:
        async with user_spotify_client(
            session, user, accounts=accounts, factory=spotify_factory, settings=settings, redis=redis
        ) as spotify:
            if spotify is not None:
                await attach_cover_art(spotify, items)
    return success({"favorites": items})


@router.post("/add", status_code=status.HTTP_201_CREATED)
async def add_favorite(payload: FavoriteAddRequest, session: AsyncSession = Depends(get_db_session)) -> Dict[str, Any]:
    user = await require_user(session, payload.session_token)
    favorite = await store.add_favorite(session, user, category=payload.category, name=payload.name, artist=payload.artist)
    return success(
        {"favorite": FavoriteOut.model_validate(favorite)},
        f"{favorite.category.label} added to favorites!",
    )


@router.post("/remove")
async def remove_favorite(payload: FavoriteRemoveRequest, session: AsyncSession = Depends(get_db_session)) -> Dict[str, Any]:
    user = await require_user(session, payload.session_token)
    if payload.id is not None:
        await store.remove_favorite(session, user, payload.id)
    else:
        await store.remove_favorite_by_item(
            session, user, category=payload.category, name=payload.name, artist=payload.artist
        )
    return success(message="Removed from favorites.")


@router.post("/stats")
async def favorite_stats(payload: FavoriteListRequest, session: AsyncSession = Depends(get_db_session)) -> Dict[str, Any]:
    user = await require_user(session, payload.session_token)
    return success(await store.favorite_stats(session, user.id))


@router.post("/migrate")
async def migrate_favorites(payload: FavoriteMigrateRequest, session: AsyncSession = Depends(get_db_session)) -> Dict[str, Any]:
    user = await require_user(session, payload.session_token)
    report = await store.migrate_favorites(session, user, payload.favorites)
    return success(report.as_dict(), report.message)
