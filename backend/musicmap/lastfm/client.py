from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Literal

import httpx

API_BASE = "https://ws.audioscrobbler.com/2.0/"
USER_AGENT = "musicmap/0.1"

logger = logging.getLogger("lastfm.client")

SearchKind = Literal["track", "album", "artist"]


class LastfmError(Exception):
    pass


class LastfmConfigError(LastfmError):
    pass


class LastfmUnavailableError(LastfmError):
    pass


class LastfmApiError(LastfmError):
    def __init__(self, code: int | None, message: str) -> None:
        super().__init__(f"last.fm error {code}: {message}")
        self.code = code
        self.message = message


@dataclass(slots=True, frozen=True)
class LastfmItem:
    name: str
    artist: str | None = None


def _as_list(value: Any) -> List[Dict[str, Any]]:
    # Last.fm collapses single-element collections into a bare object
    if isinstance(value, dict):
        return [value]
    if isinstance(value, list):
        return [item for item in value if isinstance(item, dict)]
    return []


def _collection(payload: Dict[str, Any], *path: str) -> List[Dict[str, Any]]:
    """Entries under ``path``; a missing or blank container means no results."""
    node: Any = payload
    for key in path[:-1]:
        node = node.get(key)
        if node is None or (isinstance(node, str) and not node.strip()):
            return []
        if not isinstance(node, dict):
            raise LastfmUnavailableError(f"unexpected last.fm payload at {key!r}")
    return _as_list(node.get(path[-1]))


def _text(value: Any) -> str | None:
    if isinstance(value, str) and value.strip():
        return value
    return None


def _artist_name(value: Any) -> str | None:
    if isinstance(value, dict):
        return _text(value.get("name")) or _text(value.get("#text"))
    return _text(value)


@dataclass(slots=True)
class LastfmClient:
    api_key: str
    timeout: float = 10.0
    transport: httpx.AsyncBaseTransport | None = None
    _client: httpx.AsyncClient | None = field(init=False, repr=False, default=None)

    def __post_init__(self) -> None:
        self._client = httpx.AsyncClient(
            base_url=API_BASE,
            headers={"User-Agent": USER_AGENT},
            timeout=self.timeout,
            transport=self.transport,
        )

    @property
    def configured(self) -> bool:
        return bool(self.api_key)

    async def close(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    async def __aenter__(self) -> "LastfmClient":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.close()

    async def _request(self, method: str, **params: Any) -> Dict[str, Any]:
        if not self.api_key:
            raise LastfmConfigError("last.fm api key is not configured")
        client = self._client
        if client is None:
            raise LastfmUnavailableError("last.fm client not initialized")

        query = {"method": method, "api_key": self.api_key, "format": "json"}
        query.update({key: value for key, value in params.items() if value not in (None, "")})
        try:
            response = await client.get("", params=query)
        except httpx.HTTPError as exc:
            logger.warning("Last.fm %s request failed: %s", method, exc)
            raise LastfmUnavailableError(f"network error: {exc}") from exc

        try:
            payload = response.json()
        except ValueError as exc:
            logger.warning("Last.fm %s returned non-JSON body (status %s)", method, response.status_code)
            raise LastfmUnavailableError(f"invalid response from last.fm ({response.status_code})") from exc

        if not isinstance(payload, dict):
            raise LastfmUnavailableError("unexpected last.fm payload")
        if "error" in payload:
            code = payload.get("error")
            message = str(payload.get("message") or "unknown error")
            logger.info("Last.fm %s -> error %s: %s", method, code, message)
            raise LastfmApiError(code if isinstance(code, int) else None, message)
        if response.status_code >= 400:
            raise LastfmUnavailableError(f"last.fm http error {response.status_code}")
        return payload

    async def search(self, kind: SearchKind, query: str, *, limit: int = 5) -> List[LastfmItem]:
        payload = await self._request(f"{kind}.search", **{kind: query, "limit": limit})
        out: List[LastfmItem] = []
        for item in _collection(payload, "results", f"{kind}matches", kind):
            name = _text(item.get("name"))
            if not name:
                continue
            if kind == "artist":
                out.append(LastfmItem(name=name))
                continue
            artist = _artist_name(item.get("artist"))
            if artist:
                out.append(LastfmItem(name=name, artist=artist))
        return out[:limit]

    async def search_track(self, name: str, artist: str | None = None) -> LastfmItem | None:
        payload = await self._request("track.search", track=name, artist=artist, limit=1)
        for item in _collection(payload, "results", "trackmatches", "track"):
            track_name = _text(item.get("name"))
            track_artist = _artist_name(item.get("artist"))
            if track_name and track_artist:
                return LastfmItem(name=track_name, artist=track_artist)
        return None

    async def similar_tracks(self, artist: str, track: str, limit: int = 100) -> List[LastfmItem]:
        payload = await self._request("track.getsimilar", artist=artist, track=track, limit=limit)
        out: List[LastfmItem] = []
        for item in _collection(payload, "similartracks", "track"):
            name = _text(item.get("name"))
            artist_name = _artist_name(item.get("artist"))
            if name and artist_name:
                out.append(LastfmItem(name=name, artist=artist_name))
        return out

    async def similar_artists(self, artist: str, limit: int = 3) -> List[LastfmItem]:
        payload = await self._request("artist.getsimilar", artist=artist, limit=limit)
        names = [_text(item.get("name")) for item in _collection(payload, "similarartists", "artist")]
        return [LastfmItem(name=name) for name in names if name][:limit]

    async def top_tracks(self, artist: str, limit: int = 2) -> List[LastfmItem]:
        payload = await self._request("artist.gettoptracks", artist=artist, limit=limit)
        names = [_text(item.get("name")) for item in _collection(payload, "toptracks", "track")]
        return [LastfmItem(name=name, artist=artist) for name in names if name][:limit]

    async def top_albums(self, artist: str, limit: int = 1) -> List[LastfmItem]:
        payload = await self._request("artist.gettopalbums", artist=artist, limit=limit)
        names = [_text(item.get("name")) for item in _collection(payload, "topalbums", "album")]
        return [LastfmItem(name=name, artist=artist) for name in names if name][:limit]
