from __future__ import annotations

from typing import Optional

from pydantic import AliasChoices, BaseModel, Field

from .common import SessionRequest


class RegisterRequest(BaseModel):
    username: str = ""
    email: str = ""
    password: str = ""


class LoginRequest(BaseModel):
    # username or email
    username: str = Field("", validation_alias=AliasChoices("username", "login", "email"))
    password: str = ""


class LoginResult(BaseModel):
    session_token: str
    username: str


class UserProfile(BaseModel):
    id: int
    username: str
    email: str
    spotify_user_id: Optional[str] = None
    spotify_display_name: Optional[str] = None
    spotify_avatar_url: Optional[str] = None


class SessionInfo(BaseModel):
    is_logged_in: bool = True
    user: UserProfile
    spotify_connected: bool = False


class CheckSessionRequest(SessionRequest):
    pass


class LogoutRequest(SessionRequest):
    pass
