from __future__ import annotations

import os
from typing import Optional

from dotenv import load_dotenv
from pydantic import BaseModel


class ConfigurationError(RuntimeError):
    """Raised at startup when the deployment is missing required settings."""


class Settings(BaseModel):
    secret_key: str
    client_id: str = ""
    client_secret: str = ""
    redirect_uri: str = "http://localhost:8000/callback"
    frontend_url: Optional[str] = None
    session_cookie_name: str = "diary_session"
    session_cookie_secure: bool = False
    session_max_age: int = 30 * 24 * 60 * 60
    spotify_api_base: str = "https://api.spotify.com/v1"
    spotify_timeout: Optional[float] = None
    log_level: str = "INFO"

    @classmethod
    def from_env(cls) -> "Settings":
        """Build settings from the process environment (and a .env file if present).

        Uses environment variables:
        - APP_SECRET_KEY (required, signs the session cookie)
        - SPOTIPY_CLIENT_ID / SPOTIPY_CLIENT_SECRET / SPOTIPY_REDIRECT_URI
        - FRONTEND_URL, SESSION_COOKIE_NAME, SESSION_COOKIE_SECURE, SESSION_MAX_AGE
        - SPOTIFY_API_BASE, SPOTIFY_TIMEOUT_SECONDS, LOG_LEVEL
        """
        load_dotenv()

        secret_key = os.getenv("APP_SECRET_KEY")
        if not secret_key:
            raise ConfigurationError("APP_SECRET_KEY is not set")

        timeout = os.getenv("SPOTIFY_TIMEOUT_SECONDS")
        return cls(
            secret_key=secret_key,
            client_id=os.getenv("SPOTIPY_CLIENT_ID", ""),
            client_secret=os.getenv("SPOTIPY_CLIENT_SECRET", ""),
            redirect_uri=os.getenv("SPOTIPY_REDIRECT_URI", "http://localhost:8000/callback"),
            frontend_url=os.getenv("FRONTEND_URL") or None,
            session_cookie_name=os.getenv("SESSION_COOKIE_NAME", "diary_session"),
            session_cookie_secure=os.getenv("SESSION_COOKIE_SECURE", "false").lower() in ("1", "true", "yes"),
            session_max_age=int(os.getenv("SESSION_MAX_AGE", str(30 * 24 * 60 * 60))),
            spotify_api_base=os.getenv("SPOTIFY_API_BASE", "https://api.spotify.com/v1"),
            spotify_timeout=float(timeout) if timeout else None,
            log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
        )
