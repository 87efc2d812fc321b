from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Literal, Sequence

import httpx

API_BASE = "https://api.spotify.com/v1"

logger = logging.getLogger("spotify.client")

SpotifyKind = Literal["track", "album", "artist"]


class SpotifyClientError(Exception):
    pass


class SpotifyAuthError(SpotifyClientError):
    pass


@dataclass(slots=True, frozen=True)
class SpotifyItem:
    id: str
    name: str
    image_url: str | None = None


def first_image(images: Any) -> str | None:
    if not isinstance(images, list):
        return None
    return next(
        (img["url"] for img in images if isinstance(img, dict) and isinstance(img.get("url"), str) and img["url"]),
        None,
    )


@dataclass(slots=True)
class SpotifyClient:
    access_token: str
    timeout: float = 10.0
    transport: httpx.AsyncBaseTransport | None = None
    _client: httpx.AsyncClient | None = field(init=False, repr=False, default=None)

    def __post_init__(self) -> None:
        self._client = httpx.AsyncClient(
            base_url=API_BASE,
            headers={"Authorization": f"Bearer {self.access_token}", "Content-Type": "application/json"},
            timeout=self.timeout,
            transport=self.transport,
        )

    async def close(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    async def __aenter__(self) -> "SpotifyClient":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.close()

    async def _request(
        self,
        method: str,
        url: str,
        *,
        params: Dict[str, Any] | None = None,
    ) -> Dict[str, Any]:
        client = self._client
        if client is None:
            raise SpotifyClientError("spotify client not initialized")

        # Strip leading slash to avoid double slashes with base_url
        clean_url = url.lstrip("/")
        try:
            response = await client.request(method, clean_url, params=params)
        except httpx.HTTPError as exc:
            raise SpotifyClientError(f"network error: {exc}") from exc

        if response.status_code == 401:
            raise SpotifyAuthError("spotify token unauthorized")
        if response.status_code >= 400:
            detail = response.text[:300]
            logger.warning("Spotify API %s %s -> %s %s", method, url, response.status_code, detail)
            raise SpotifyClientError(f"spotify api error {response.status_code}: {detail}")
        if not response.content:
            return {}
        try:
            payload = response.json()
        except ValueError as exc:
            raise SpotifyClientError("invalid json from spotify") from exc
        if not isinstance(payload, dict):
            raise SpotifyClientError("unexpected spotify payload")
        return payload

    async def search_item(self, kind: SpotifyKind, name: str, artist: str | None = None) -> SpotifyItem | None:
        query = name
        if artist:
            query = f"{name} artist:{artist}"
        payload = await self._request("GET", "/search", params={"q": query, "type": kind, "limit": 1})
        group = payload.get(f"{kind}s") or {}
        if not isinstance(group, dict):
            raise SpotifyClientError(f"unexpected search payload for {kind}")
        items = group.get("items") or []
        if not isinstance(items, list):
            raise SpotifyClientError(f"unexpected search payload for {kind}")
        item = next(
            (entry for entry in items if isinstance(entry, dict) and isinstance(entry.get("id"), str) and entry["id"]),
            None,
        )
        if item is None:
            return None
        album = item.get("album")
        image_url = first_image(item.get("images")) or first_image(album.get("images") if isinstance(album, dict) else None)
        found_name = item.get("name")
        if not isinstance(found_name, str) or not found_name.strip():
            found_name = name
        return SpotifyItem(id=item["id"], name=found_name, image_url=image_url)

    async def get_recommendations(
        self,
        *,
        seed_artists: Sequence[str] | None = None,
        seed_tracks: Sequence[str] | None = None,
        limit: int = 20,
    ) -> List[Dict[str, Any]]:
        clean_artists = list(dict.fromkeys(a for a in (seed_artists or []) if a))[:2]
        clean_tracks = list(dict.fromkeys(t for t in (seed_tracks or []) if t))[:3]
        if not clean_artists and not clean_tracks:
            raise SpotifyClientError("at least one seed required for recommendations")

        params: Dict[str, Any] = {"limit": max(1, min(limit, 100))}
        if clean_artists:
            params["seed_artists"] = ",".join(clean_artists)
        if clean_tracks:
            params["seed_tracks"] = ",".join(clean_tracks)

        logger.info("Recommendations request: tracks=%s, artists=%s, limit=%s", clean_tracks, clean_artists, limit)
        payload = await self._request("GET", "/recommendations", params=params)
        raw_tracks = payload.get("tracks") or []
        if not isinstance(raw_tracks, list):
            raise SpotifyClientError("unexpected recommendations payload")
        tracks = [track for track in raw_tracks if isinstance(track, dict)]
        logger.info("Recommendations returned %s tracks", len(tracks))
        return tracks

    async def get_current_user(self) -> Dict[str, Any]:
        return await self._request("GET", "/me")
