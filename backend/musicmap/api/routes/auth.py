from __future__ import annotations

from typing import Any, Dict

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from ...core.security import require_user
from ...schemas.auth import (
    CheckSessionRequest,
    LoginRequest,
    LoginResult,
    LogoutRequest,
    RegisterRequest,
    SessionInfo,
    UserProfile,
)
from ...schemas.common import success
from ...services import accounts
from ..deps import get_db_session

router = APIRouter(prefix="/v1/auth", tags=["auth"])


@router.post("/register", status_code=status.HTTP_201_CREATED)
async def register(payload: RegisterRequest, session: AsyncSession = Depends(get_db_session)) -> Dict[str, Any]:
    user = await accounts.register_user(
        session,
        username=payload.username,
        email=payload.email,
        password=payload.password,
    )
    return success({"id": user.id, "username": user.username}, "Registration successful.")


@router.post("/login")
async def login(payload: LoginRequest, session: AsyncSession = Depends(get_db_session)) -> Dict[str, Any]:
    user, token = await accounts.login(session, login=payload.username, password=payload.password)
    return success(LoginResult(session_token=token, username=user.username))


@router.post("/session")
async def check_session(payload: CheckSessionRequest, session: AsyncSession = Depends(get_db_session)) -> Dict[str, Any]:
    user = await require_user(session, payload.session_token)
    info = SessionInfo(user=UserProfile(**accounts.profile(user)), spotify_connected=user.spotify_connected)
    return success(info)


@router.post("/logout")
async def logout(payload: LogoutRequest, session: AsyncSession = Depends(get_db_session)) -> Dict[str, Any]:
    await accounts.logout(session, payload.session_token)
    return success(message="Logged out.")
