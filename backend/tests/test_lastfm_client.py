from __future__ import annotations

import asyncio
from typing import Any, Callable, Dict, List

import httpx
import pytest

from musicmap.lastfm.client import (
    LastfmApiError,
    LastfmClient,
    LastfmConfigError,
    LastfmItem,
    LastfmUnavailableError,
)


def _client(handler: Callable[[httpx.Request], httpx.Response], api_key: str = "key") -> LastfmClient:
    return LastfmClient(api_key=api_key, transport=httpx.MockTransport(handler))


def _call(client: LastfmClient, method: str, *args: Any, **kwargs: Any) -> Any:
    async def run() -> Any:
        async with client:
            return await getattr(client, method)(*args, **kwargs)

    return asyncio.run(run())


def test_search_sends_method_and_key() -> None:
    seen: List[Dict[str, str]] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(dict(request.url.params))
        return httpx.Response(
            200,
            json={
                "results": {
                    "trackmatches": {
                        "track": [
                            {"name": "Yesterday", "artist": "The Beatles"},
                            {"name": "Yesterday", "artist": ""},
                            {"name": "Yesterday Once More", "artist": "Carpenters"},
                        ]
                    }
                }
            },
        )

    items = _call(_client(handler), "search", "track", "yesterday", limit=5)
    assert items == [LastfmItem("Yesterday", "The Beatles"), LastfmItem("Yesterday Once More", "Carpenters")]
    assert seen[0]["method"] == "track.search"
    assert seen[0]["track"] == "yesterday"
    assert seen[0]["api_key"] == "key"
    assert seen[0]["format"] == "json"


def test_single_result_collapsed_to_object_is_handled() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json={"similarartists": {"artist": {"name": "The Kinks"}}})

    assert _call(_client(handler), "similar_artists", "The Beatles") == [LastfmItem("The Kinks")]


def test_similar_tracks_reads_nested_artist_names() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        assert request.url.params["method"] == "track.getsimilar"
        return httpx.Response(
            200,
            json={
                "similartracks": {
                    "track": [
                        {"name": "Hey Jude", "artist": {"name": "The Beatles"}},
                        {"name": "Orphan"},
                    ]
                }
            },
        )

    items = _call(_client(handler), "similar_tracks", "The Beatles", "Yesterday")
    assert items == [LastfmItem("Hey Jude", "The Beatles")]


def test_top_tracks_are_attributed_to_the_requested_artist() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json={"toptracks": {"track": [{"name": "Lola"}, {"name": "Victoria"}, {"name": "Ape Man"}]}})

    items = _call(_client(handler), "top_tracks", "The Kinks", limit=2)
    assert items == [LastfmItem("Lola", "The Kinks"), LastfmItem("Victoria", "The Kinks")]


def test_search_track_without_match_returns_none() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json={"results": {"trackmatches": {"track": []}}})

    assert _call(_client(handler), "search_track", "zzzz") is None


def test_error_payload_raises_api_error() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json={"error": 6, "message": "Track not found"})

    with pytest.raises(LastfmApiError) as excinfo:
        _call(_client(handler), "search_track", "zzzz")
    assert excinfo.value.code == 6
    assert excinfo.value.message == "Track not found"


def test_entries_without_text_names_are_skipped() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.params["method"] == "artist.getsimilar":
            return httpx.Response(
                200,
                json={"similarartists": {"artist": [{"name": 12345}, {"name": ""}, "oops", {"name": "The Kinks"}]}},
            )
        return httpx.Response(
            200,
            json={
                "similartracks": {
                    "track": [
                        {"name": "Lola", "artist": {"name": 5}},
                        {"name": ["Lola"], "artist": {"name": "The Kinks"}},
                        {"name": "Waterloo Sunset", "artist": {"name": "The Kinks"}},
                    ]
                }
            },
        )

    assert _call(_client(handler), "similar_artists", "The Beatles") == [LastfmItem(name="The Kinks")]
    assert _call(_client(handler), "similar_tracks", "The Kinks", "Lola") == [
        LastfmItem(name="Waterloo Sunset", artist="The Kinks")
    ]


def test_blank_container_means_no_results() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json={"results": {"trackmatches": "\n"}})

    assert _call(_client(handler), "search", "track", "zzzz") == []


@pytest.mark.parametrize(
    "method, payload",
    [
        ("similar_artists", {"similarartists": "broken"}),
        ("top_albums", {"topalbums": ["not", "an", "object"]}),
        ("search_track", {"results": 42}),
    ],
)
def test_unexpected_container_shape_raises_unavailable(method: str, payload: Dict[str, Any]) -> None:
    with pytest.raises(LastfmUnavailableError):
        _call(_client(lambda request: httpx.Response(200, json=payload)), method, "The Kinks")


@pytest.mark.parametrize(
    "response",
    [
        httpx.Response(502, text="<html>bad gateway</html>"),
        httpx.Response(500, json={"unexpected": True}),
        httpx.Response(200, json=["not", "an", "object"]),
    ],
)
def test_unusable_responses_raise_unavailable(response: httpx.Response) -> None:
    with pytest.raises(LastfmUnavailableError):
        _call(_client(lambda request: response), "top_albums", "The Kinks")


def test_network_failure_raises_unavailable() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    with pytest.raises(LastfmUnavailableError):
        _call(_client(handler), "similar_artists", "The Beatles")


def test_missing_api_key_fails_before_any_request() -> None:
    def handler(request: httpx.Request) -> httpx.Response:  # pragma: no cover - must not be reached
        raise AssertionError("request should not be sent")

    client = _client(handler, api_key="")
    assert not client.configured
    with pytest.raises(LastfmConfigError):
        _call(client, "search", "artist", "radiohead")
