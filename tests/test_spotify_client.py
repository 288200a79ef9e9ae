"""Test the Spotify Web API caller"""

import httpx
import pytest

from diary.spotify_client import SpotifyClient, UpstreamError


@pytest.fixture
async def spotify(spotify_stub):
    client = SpotifyClient(transport=httpx.MockTransport(spotify_stub.handler))
    yield client
    await client.aclose()


async def test_profile_request_headers(spotify, spotify_stub):
    spotify_stub.routes["/v1/me"] = httpx.Response(200, json={"id": "user-1"})

    result = await spotify.fetch_profile("tok")

    assert result == {"id": "user-1"}
    request = spotify_stub.calls[0]
    assert str(request.url) == "https://api.spotify.com/v1/me"
    assert request.headers["authorization"] == "Bearer tok"
    assert request.headers["cache-control"] == "no-cache"


async def test_recently_played_asks_for_fifty(spotify, spotify_stub):
    spotify_stub.routes["/v1/me/player/recently-played"] = httpx.Response(200, json={"items": []})

    result = await spotify.fetch_recently_played("tok")

    assert result == {"items": []}
    assert spotify_stub.calls[0].url.params["limit"] == "50"


async def test_liked_status_without_ids_makes_no_request(spotify, spotify_stub):
    assert await spotify.fetch_liked_status("tok", []) == []
    assert spotify_stub.calls == []


async def test_liked_status_joins_ids(spotify, spotify_stub):
    spotify_stub.routes["/v1/me/tracks/contains"] = httpx.Response(200, json=[False, True])

    result = await spotify.fetch_liked_status("tok", ["a", "b"])

    assert result == [False, True]
    assert spotify_stub.calls[0].url.params["ids"] == "a,b"


async def test_liked_status_batches_of_fifty(spotify, spotify_stub):
    def contains(request):
        ids = request.url.params["ids"].split(",")
        if ids[0] == "t0":
            # short answer for the first batch
            return httpx.Response(200, json=[True] * 49)
        return httpx.Response(200, json=[True] * len(ids))

    spotify_stub.routes["/v1/me/tracks/contains"] = contains
    track_ids = [f"t{index}" for index in range(60)]

    result = await spotify.fetch_liked_status("tok", track_ids)

    assert len(spotify_stub.calls) == 2
    assert len(result) == 60
    assert result[49] is False
    assert result[50:] == [True] * 10


async def test_liked_status_rejects_non_list(spotify, spotify_stub):
    spotify_stub.routes["/v1/me/tracks/contains"] = httpx.Response(200, json={"a": True})

    result = await spotify.fetch_liked_status("tok", ["a"])

    assert isinstance(result, UpstreamError)
    assert result.body == {"a": True}


async def test_error_body_is_kept(spotify, spotify_stub):
    body = {"error": {"status": 429, "message": "API rate limit exceeded"}}
    spotify_stub.routes["/v1/me"] = httpx.Response(429, json=body)

    result = await spotify.fetch_profile("tok")

    assert result == UpstreamError(status=429, body=body)


async def test_error_body_that_is_not_json(spotify, spotify_stub):
    spotify_stub.routes["/v1/me"] = httpx.Response(502, text="<html>Bad Gateway</html>")

    result = await spotify.fetch_profile("tok")

    assert isinstance(result, UpstreamError)
    assert result.status == 502
    assert result.body is None


async def test_success_body_that_is_not_json(spotify, spotify_stub):
    spotify_stub.routes["/v1/me"] = httpx.Response(200, text="not json")

    result = await spotify.fetch_profile("tok")

    assert result == UpstreamError(status=200, body=None, reason="invalid JSON")


async def test_transport_error(spotify, spotify_stub):
    def refuse(request):
        raise httpx.ConnectError("connection refused", request=request)

    spotify_stub.routes["/v1/me"] = refuse

    result = await spotify.fetch_profile("tok")

    assert isinstance(result, UpstreamError)
    assert result.status is None
    assert "connection refused" in result.reason


async def test_custom_base_url():
    seen = []

    def handler(request):
        seen.append(str(request.url))
        return httpx.Response(200, json={"id": "user-1"})

    client = SpotifyClient("http://spotify.local/v1/", transport=httpx.MockTransport(handler))
    try:
        await client.fetch_profile("tok")
    finally:
        await client.aclose()

    assert seen == ["http://spotify.local/v1/me"]
