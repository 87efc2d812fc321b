from __future__ import annotations

import logging
from typing import Any, Dict, Tuple

from sqlalchemy import or_, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.errors import AuthenticationError, ConflictError, ValidationError
from ..core.security import hash_password, new_session_token, verify_password
from ..db import models
from ..spotify.auth import TokenGrant
from ..spotify.client import first_image
from .spotify_tokens import store_grant

logger = logging.getLogger("accounts")

DEFAULT_SPOTIFY_DISPLAY_NAME = "Spotify user"


async def _find_by_login(session: AsyncSession, login: str) -> models.User | None:
    result = await session.execute(
        select(models.User)
        .where(or_(models.User.username == login, models.User.email == login.lower()))
        .limit(1)
    )
    return result.scalars().first()


async def register_user(session: AsyncSession, *, username: str, email: str, password: str) -> models.User:
    username = username.strip()
    email = email.strip().lower()
    if not username or not email or not password:
        raise ValidationError("All fields are required.")
    if "@" not in email:
        raise ValidationError("Invalid email address.")

    existing = await session.execute(
        select(models.User.id).where(or_(models.User.username == username, models.User.email == email)).limit(1)
    )
    if existing.first() is not None:
        raise ConflictError("Username or email already exists.")

    user = models.User(username=username, email=email, password_hash=hash_password(password))
    session.add(user)
    try:
        await session.commit()
    except IntegrityError as exc:
        await session.rollback()
        raise ConflictError("Username or email already exists.") from exc
    logger.info("Registered user %s", user.id)
    return user


async def login(session: AsyncSession, *, login: str, password: str) -> Tuple[models.User, str]:
    login = login.strip()
    if not login or not password:
        raise ValidationError("Username and password are required.")
    user = await _find_by_login(session, login)
    if user is None:
        raise AuthenticationError("User not found.")
    if not verify_password(password, user.password_hash):
        raise AuthenticationError("Incorrect password.")

    # One live session per user: a new login replaces the previous token
    token = new_session_token()
    user.session_token = token
    await session.commit()
    return user, token


async def logout(session: AsyncSession, token: str) -> None:
    token = token.strip()
    if not token:
        return
    await session.execute(
        update(models.User).where(models.User.session_token == token).values(session_token=None)
    )
    await session.commit()


def profile(user: models.User) -> Dict[str, Any]:
    return {
        "id": user.id,
        "username": user.username,
        "email": user.email,
        "spotify_user_id": user.spotify_user_id,
        "spotify_display_name": user.spotify_display_name,
        "spotify_avatar_url": user.spotify_avatar_url,
    }


async def link_spotify_account(
    session: AsyncSession,
    user: models.User,
    *,
    grant: TokenGrant,
    spotify_profile: Dict[str, Any],
) -> None:
    user.spotify_user_id = spotify_profile["id"]
    user.spotify_display_name = spotify_profile.get("display_name") or DEFAULT_SPOTIFY_DISPLAY_NAME
    user.spotify_avatar_url = first_image(spotify_profile.get("images"))
    await store_grant(
        session,
        user,
        access_token=grant.access_token,
        expires_in=grant.expires_in,
        refresh_token=grant.refresh_token,
    )
    logger.info("Linked spotify account %s to user %s", user.spotify_user_id, user.id)
