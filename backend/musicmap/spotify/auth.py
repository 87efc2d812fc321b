from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Dict
from urllib.parse import urlencode

import httpx

from ..core.config import Settings

AUTHORIZE_ENDPOINT = "https://accounts.spotify.com/authorize"
TOKEN_ENDPOINT = "https://accounts.spotify.com/api/token"
SCOPES = "user-read-private user-read-email user-top-read"

logger = logging.getLogger("spotify.auth")


class SpotifyTokenError(Exception):
    pass


@dataclass(slots=True, frozen=True)
class TokenGrant:
    access_token: str
    expires_in: int
    refresh_token: str | None = None


@dataclass(slots=True)
class SpotifyAccountsClient:
    """Authorization-code and refresh-token exchanges against Spotify accounts."""

    client_id: str
    client_secret: str
    redirect_uri: str
    timeout: float = 10.0
    transport: httpx.AsyncBaseTransport | None = None
    _client: httpx.AsyncClient | None = field(init=False, repr=False, default=None)

    def __post_init__(self) -> None:
        self._client = httpx.AsyncClient(timeout=self.timeout, transport=self.transport)

    @classmethod
    def from_settings(cls, settings: Settings) -> "SpotifyAccountsClient":
        return cls(
            client_id=settings.spotify_client_id,
            client_secret=settings.spotify_client_secret,
            redirect_uri=settings.spotify_redirect_uri,
            timeout=settings.http_timeout_seconds,
        )

    @property
    def configured(self) -> bool:
        return bool(self.client_id and self.client_secret)

    async def close(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    def authorize_url(self, state: str) -> str:
        params = {
            "response_type": "code",
            "client_id": self.client_id,
            "scope": SCOPES,
            "redirect_uri": self.redirect_uri,
            "state": state,
        }
        return f"{AUTHORIZE_ENDPOINT}?{urlencode(params)}"

    async def _token_request(self, data: Dict[str, str]) -> TokenGrant:
        if not self.configured:
            raise SpotifyTokenError("missing spotify client credentials")
        client = self._client
        if client is None:
            raise SpotifyTokenError("spotify accounts client not initialized")
        try:
            resp = await client.post(TOKEN_ENDPOINT, data=data, auth=(self.client_id, self.client_secret))
        except httpx.HTTPError as exc:
            raise SpotifyTokenError(f"network error: {exc}") from exc
        try:
            payload: Dict[str, Any] = resp.json()
        except ValueError as exc:
            raise SpotifyTokenError(f"invalid token response ({resp.status_code})") from exc
        if not isinstance(payload, dict):
            raise SpotifyTokenError("unexpected token payload")
        if resp.status_code != 200 or "access_token" not in payload:
            raise SpotifyTokenError(f"token request failed: {resp.status_code} {payload.get('error')}")
        try:
            expires_in = int(payload.get("expires_in", 3600))
        except (TypeError, ValueError):
            expires_in = 3600
        return TokenGrant(
            access_token=payload["access_token"],
            expires_in=expires_in,
            refresh_token=payload.get("refresh_token"),
        )

    async def exchange_code(self, code: str) -> TokenGrant:
        return await self._token_request(
            {"grant_type": "authorization_code", "code": code, "redirect_uri": self.redirect_uri}
        )

    async def refresh(self, refresh_token: str) -> TokenGrant:
        grant = await self._token_request({"grant_type": "refresh_token", "refresh_token": refresh_token})
        logger.info("Refreshed spotify access token (expires in %ss)", grant.expires_in)
        return grant
