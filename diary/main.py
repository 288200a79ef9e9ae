from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from diary.auth import router as auth_router
from diary.config import Settings
from diary.credentials import CredentialExtractor, RequestContextMiddleware
from diary.proxy import router as proxy_router
from diary.session import SessionStore
from diary.spotify_client import SpotifyClient


def create_app(settings: Optional[Settings] = None, spotify: Optional[SpotifyClient] = None) -> FastAPI:
    """Build the API. Raises ConfigurationError when no signing secret is configured."""
    if settings is None:
        settings = Settings.from_env()

    store = SessionStore(settings.secret_key, max_age=settings.session_max_age, secure=settings.session_cookie_secure)
    extractor = CredentialExtractor(store, settings.session_cookie_name)
    if spotify is None:
        spotify = SpotifyClient(settings.spotify_api_base, timeout=settings.spotify_timeout)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        yield
        await spotify.aclose()

    app = FastAPI(title="Listening Diary API", version="0.1.0", lifespan=lifespan)
    app.state.settings = settings
    app.state.store = store
    app.state.extractor = extractor
    app.state.spotify = spotify

    # Allow a configured frontend origin to call the API
    if settings.frontend_url:
        allowed_origins = [settings.frontend_url]
    else:
        allowed_origins = ["*"]

    app.add_middleware(
        CORSMiddleware,
        allow_origins=allowed_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_middleware(RequestContextMiddleware)

    app.include_router(auth_router)
    app.include_router(proxy_router)

    @app.get("/health")
    def health():
        return {"status": "ok"}

    return app


def run() -> None:
    import uvicorn

    settings = Settings.from_env()
    logging.basicConfig(
        level=settings.log_level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    uvicorn.run(create_app(settings), host="0.0.0.0", port=8000)


if __name__ == "__main__":
    run()
