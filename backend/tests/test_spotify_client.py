from __future__ import annotations

import asyncio
from typing import Dict, List
from urllib.parse import parse_qs, urlparse

import httpx
import pytest

from musicmap.spotify.auth import SpotifyAccountsClient, SpotifyTokenError
from musicmap.spotify.client import SpotifyAuthError, SpotifyClient, SpotifyClientError


def test_search_item_falls_back_to_album_images() -> None:
    seen: List[Dict[str, str]] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(dict(request.url.params))
        assert request.headers["Authorization"] == "Bearer token"
        return httpx.Response(
            200,
            json={
                "tracks": {
                    "items": [
                        {
                            "id": "t1",
                            "name": "Yesterday",
                            "album": {"images": [{"url": "https://img.example/help.jpg"}]},
                        }
                    ]
                }
            },
        )

    async def run():
        async with SpotifyClient(access_token="token", transport=httpx.MockTransport(handler)) as client:
            return await client.search_item("track", "Yesterday", "The Beatles")

    item = asyncio.run(run())
    assert item is not None
    assert item.id == "t1"
    assert item.image_url == "https://img.example/help.jpg"
    assert seen[0]["q"] == "Yesterday artist:The Beatles"
    assert seen[0]["type"] == "track"
    assert seen[0]["limit"] == "1"


def test_recommendations_cap_seed_counts() -> None:
    seen: List[Dict[str, str]] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(dict(request.url.params))
        return httpx.Response(200, json={"tracks": [{"id": "r1", "name": "Karma Police"}, "junk"]})

    async def run():
        async with SpotifyClient(access_token="token", transport=httpx.MockTransport(handler)) as client:
            return await client.get_recommendations(
                seed_artists=["a1", "a2", "a3"],
                seed_tracks=["t1", "t1", "t2", "t3", "t4"],
                limit=20,
            )

    tracks = asyncio.run(run())
    assert tracks == [{"id": "r1", "name": "Karma Police"}]
    assert seen[0]["seed_artists"] == "a1,a2"
    assert seen[0]["seed_tracks"] == "t1,t2,t3"


def test_recommendations_require_a_seed() -> None:
    async def run():
        async with SpotifyClient(access_token="token", transport=httpx.MockTransport(lambda r: httpx.Response(200))) as client:
            await client.get_recommendations(seed_artists=[], seed_tracks=[""])

    with pytest.raises(SpotifyClientError):
        asyncio.run(run())


def test_search_item_skips_malformed_entries() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(
            200,
            json={
                "tracks": {
                    "items": [
                        "oops",
                        {"id": 7, "name": "Numeric id"},
                        {"id": "t2", "name": 404, "images": "none", "album": ["not", "a", "dict"]},
                    ]
                },
                "artists": "bad",
            },
        )

    async def run():
        async with SpotifyClient(access_token="token", transport=httpx.MockTransport(handler)) as client:
            track = await client.search_item("track", "Lola", "The Kinks")
            with pytest.raises(SpotifyClientError):
                await client.search_item("artist", "The Kinks")
            return track

    track = asyncio.run(run())
    assert track is not None
    assert track.id == "t2"
    assert track.name == "Lola"
    assert track.image_url is None


def test_recommendations_with_malformed_track_list_raise() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json={"tracks": {"items": ["oops"]}})

    async def run():
        async with SpotifyClient(access_token="token", transport=httpx.MockTransport(handler)) as client:
            await client.get_recommendations(seed_tracks=["t1"])

    with pytest.raises(SpotifyClientError):
        asyncio.run(run())


@pytest.mark.parametrize("status_code, error", [(401, SpotifyAuthError), (429, SpotifyClientError), (500, SpotifyClientError)])
def test_error_statuses_raise(status_code: int, error: type) -> None:
    async def run():
        transport = httpx.MockTransport(lambda r: httpx.Response(status_code, json={"error": "nope"}))
        async with SpotifyClient(access_token="token", transport=transport) as client:
            await client.get_current_user()

    with pytest.raises(error):
        asyncio.run(run())


def _accounts(handler) -> SpotifyAccountsClient:
    return SpotifyAccountsClient(
        client_id="cid",
        client_secret="secret",
        redirect_uri="http://localhost/v1/spotify/callback",
        transport=httpx.MockTransport(handler),
    )


def test_authorize_url_carries_state_and_scopes() -> None:
    accounts = _accounts(lambda r: httpx.Response(500))
    query = parse_qs(urlparse(accounts.authorize_url("nonce-1")).query)
    assert query["state"] == ["nonce-1"]
    assert query["client_id"] == ["cid"]
    assert "user-top-read" in query["scope"][0]
    asyncio.run(accounts.close())


def test_exchange_code_posts_authorization_grant() -> None:
    bodies: List[Dict[str, List[str]]] = []

    def handler(request: httpx.Request) -> httpx.Response:
        bodies.append(parse_qs(request.content.decode()))
        assert request.headers["Authorization"].startswith("Basic ")
        return httpx.Response(200, json={"access_token": "a", "expires_in": 3600, "refresh_token": "r"})

    accounts = _accounts(handler)

    async def run():
        try:
            return await accounts.exchange_code("code-1")
        finally:
            await accounts.close()

    grant = asyncio.run(run())
    assert (grant.access_token, grant.expires_in, grant.refresh_token) == ("a", 3600, "r")
    assert bodies[0]["grant_type"] == ["authorization_code"]
    assert bodies[0]["code"] == ["code-1"]


def test_failed_refresh_raises_token_error() -> None:
    accounts = _accounts(lambda r: httpx.Response(400, json={"error": "invalid_grant"}))

    async def run():
        try:
            await accounts.refresh("stale")
        finally:
            await accounts.close()

    with pytest.raises(SpotifyTokenError):
        asyncio.run(run())


def test_unconfigured_accounts_refuse_token_requests() -> None:
    accounts = SpotifyAccountsClient(client_id="", client_secret="", redirect_uri="http://localhost/cb")
    assert not accounts.configured

    async def run():
        try:
            await accounts.refresh("anything")
        finally:
            await accounts.close()

    with pytest.raises(SpotifyTokenError):
        asyncio.run(run())
