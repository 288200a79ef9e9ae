from __future__ import annotations

from fastapi import Request

from diary.config import Settings
from diary.credentials import CredentialExtractor
from diary.session import SessionStore
from diary.spotify_client import SpotifyClient


def get_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_store(request: Request) -> SessionStore:
    return request.app.state.store


def get_extractor(request: Request) -> CredentialExtractor:
    return request.app.state.extractor


def get_spotify(request: Request) -> SpotifyClient:
    return request.app.state.spotify
