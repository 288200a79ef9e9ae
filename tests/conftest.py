"""Test configuration and fixtures"""

import time
from typing import Callable, Dict, List, Optional, Union

import httpx
import pytest
from fastapi.testclient import TestClient

from diary.config import Settings
from diary.main import create_app
from diary.models import SessionCredential
from diary.session import SessionStore
from diary.spotify_client import SpotifyClient

SECRET = "test-secret-key-for-signing-sessions-0123456789"

Route = Union[httpx.Response, Callable[[httpx.Request], httpx.Response]]


class SpotifyStub:
    """Answers Spotify API paths with canned responses and records every request."""

    def __init__(self):
        self.routes: Dict[str, Route] = {}
        self.calls: List[httpx.Request] = []

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.calls.append(request)
        route = self.routes.get(request.url.path)
        if route is None:
            return httpx.Response(404, json={"error": {"status": 404, "message": "Not found"}})
        if callable(route):
            return route(request)
        return route

    @property
    def paths(self) -> List[str]:
        return [request.url.path for request in self.calls]


def recently_played_payload(*track_ids: Optional[str]) -> dict:
    items = []
    for index, track_id in enumerate(track_ids):
        items.append(
            {
                "played_at": f"2024-05-0{index + 1}T10:00:00.000Z",
                "context": None,
                "track": {
                    "id": track_id,
                    "name": f"Song {index}",
                    "artists": [{"id": f"artist{index}", "name": f"Artist {index}"}],
                    "album": {"id": f"album{index}", "name": f"Album {index}", "images": []},
                    "duration_ms": 200000,
                },
            }
        )
    return {
        "href": "https://api.spotify.com/v1/me/player/recently-played?limit=50",
        "limit": 50,
        "next": None,
        "cursors": {"after": "1714557600000", "before": "1714557000000"},
        "items": items,
    }


@pytest.fixture
def settings():
    return Settings(
        secret_key=SECRET,
        client_id="client-id",
        client_secret="client-secret",
        redirect_uri="http://testserver/callback",
    )


@pytest.fixture
def store(settings):
    return SessionStore(settings.secret_key, max_age=settings.session_max_age)


@pytest.fixture
def spotify_stub():
    return SpotifyStub()


@pytest.fixture
def app(settings, spotify_stub):
    spotify = SpotifyClient(settings.spotify_api_base, transport=httpx.MockTransport(spotify_stub.handler))
    return create_app(settings, spotify=spotify)


@pytest.fixture
def client(app):
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def session_cookie(settings, store):
    """Build a Cookie header carrying a signed session."""

    def _session_cookie(access_token: str = "tok", expires_in: Optional[int] = 3600, **claims) -> Dict[str, str]:
        expires_at = int(time.time()) + expires_in if expires_in is not None else None
        credential = SessionCredential(access_token=access_token, refresh_token="refresh", expires_at=expires_at)
        claims.setdefault("sub", "user-1")
        artifact = store.issue(credential, claims)
        return {"Cookie": f"{settings.session_cookie_name}={artifact}"}

    return _session_cookie
