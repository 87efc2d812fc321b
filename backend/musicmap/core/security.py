from __future__ import annotations

import secrets

import bcrypt
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from ..db import models
from .errors import AuthenticationError, ValidationError

# bcrypt only looks at the first 72 bytes of a password
BCRYPT_MAX_BYTES = 72
SESSION_TOKEN_BYTES = 24


def hash_password(password: str) -> str:
    raw = password.encode("utf-8")
    if len(raw) > BCRYPT_MAX_BYTES:
        raise ValidationError(f"Password too long (max {BCRYPT_MAX_BYTES} bytes).")
    return bcrypt.hashpw(raw, bcrypt.gensalt()).decode("utf-8")


def verify_password(password: str, hashed: str) -> bool:
    raw = password.encode("utf-8")
    if not hashed or len(raw) > BCRYPT_MAX_BYTES:
        return False
    try:
        return bcrypt.checkpw(raw, hashed.encode("utf-8"))
    except ValueError:
        # stored hash is not a bcrypt hash
        return False


def new_session_token() -> str:
    return secrets.token_hex(SESSION_TOKEN_BYTES)


async def get_user_by_token(session: AsyncSession, token: str) -> models.User | None:
    if not token:
        return None
    result = await session.execute(select(models.User).where(models.User.session_token == token).limit(1))
    return result.scalars().first()


async def require_user(session: AsyncSession, token: str | None) -> models.User:
    token = (token or "").strip()
    if not token:
        raise AuthenticationError("Missing session token.")
    user = await get_user_by_token(session, token)
    if user is None:
        raise AuthenticationError("Invalid session.")
    return user
