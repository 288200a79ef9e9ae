from __future__ import annotations

import logging
import secrets
from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, HTTPException, Request
from fastapi.responses import JSONResponse, RedirectResponse
from pydantic import ValidationError
from spotipy.cache_handler import MemoryCacheHandler
from spotipy.oauth2 import SpotifyOAuth
from starlette.concurrency import run_in_threadpool

from diary.config import Settings
from diary.credentials import CredentialExtractor, ambient_source
from diary.dependencies import get_extractor, get_settings, get_spotify, get_store
from diary.models import Profile, SessionCredential
from diary.session import SessionStore
from diary.spotify_client import SpotifyClient, UpstreamError

logger = logging.getLogger(__name__)

SCOPE = "user-read-email user-read-private user-top-read user-read-recently-played user-library-read"
STATE_COOKIE_NAME = "diary_oauth_state"
STATE_MAX_AGE = 10 * 60


def get_spotify_oauth(settings: Settings, state: Optional[str] = None) -> SpotifyOAuth:
    """Create a SpotifyOAuth instance for one sign-in attempt.

    Tokens are cached in memory only; the signed session cookie is the
    single place a credential lives between requests.
    """
    return SpotifyOAuth(
        client_id=settings.client_id,
        client_secret=settings.client_secret,
        redirect_uri=settings.redirect_uri,
        scope=SCOPE,
        state=state,
        cache_handler=MemoryCacheHandler(),
        show_dialog=True,
    )


async def profile_claims(spotify: SpotifyClient, access_token: str) -> Dict[str, Any]:
    """Session claims describing the user. Empty when the profile can't be read."""
    result = await spotify.fetch_profile(access_token)
    if isinstance(result, UpstreamError):
        logger.warning("Could not load profile for new session", extra={"status": result.status})
        return {}
    try:
        profile = Profile.model_validate(result)
    except ValidationError:
        logger.warning("Spotify returned an unexpected profile payload")
        return {}
    return {
        "sub": profile.id,
        "name": profile.display_name,
        "email": profile.email,
        "picture": profile.images[0].url if profile.images else None,
    }


def _after_sign_in(settings: Settings) -> str:
    return settings.frontend_url or "/"


router = APIRouter()


@router.get("/login")
async def login(
    settings: Settings = Depends(get_settings),
    store: SessionStore = Depends(get_store),
) -> RedirectResponse:
    """Redirect the user to Spotify's authorization URL."""
    state = secrets.token_urlsafe(32)
    oauth = get_spotify_oauth(settings, state=state)
    response = RedirectResponse(oauth.get_authorize_url(state=state))
    response.set_cookie(
        STATE_COOKIE_NAME,
        state,
        max_age=STATE_MAX_AGE,
        httponly=True,
        samesite="lax",
        secure=store.secure,
        path="/",
    )
    return response


@router.get("/callback")
async def callback(
    request: Request,
    settings: Settings = Depends(get_settings),
    store: SessionStore = Depends(get_store),
    spotify: SpotifyClient = Depends(get_spotify),
) -> RedirectResponse:
    """Handle Spotify's redirect: exchange the code and start a signed session."""
    params = dict(request.query_params)
    error = params.get("error")
    if error:
        raise HTTPException(status_code=400, detail=error)

    code = params.get("code")
    if not code:
        raise HTTPException(status_code=400, detail="Missing authorization code")

    expected_state = request.cookies.get(STATE_COOKIE_NAME)
    state = params.get("state")
    if not expected_state or not state or not secrets.compare_digest(expected_state, state):
        raise HTTPException(status_code=400, detail="Invalid OAuth state")

    oauth = get_spotify_oauth(settings)
    try:
        token_info = await run_in_threadpool(oauth.get_access_token, code, check_cache=False)
    except Exception as exc:  # spotipy raises SpotifyOauthError or requests errors here
        logger.warning("Token exchange failed: %s", exc.__class__.__name__)
        raise HTTPException(status_code=400, detail="Token exchange failed") from exc

    access_token = (token_info or {}).get("access_token")
    if not access_token:
        raise HTTPException(status_code=400, detail="No access token returned from Spotify")

    credential = SessionCredential(
        access_token=access_token,
        refresh_token=token_info.get("refresh_token"),
        expires_at=token_info.get("expires_at"),
    )
    claims = await profile_claims(spotify, access_token)

    response = RedirectResponse(_after_sign_in(settings))
    response.set_cookie(settings.session_cookie_name, store.issue(credential, claims), **store.cookie_options())
    response.delete_cookie(STATE_COOKIE_NAME, path="/")
    logger.info("Signed in Spotify user %s", claims.get("sub"))
    return response


@router.get("/logout")
async def logout(settings: Settings = Depends(get_settings)) -> RedirectResponse:
    response = RedirectResponse(_after_sign_in(settings))
    response.delete_cookie(settings.session_cookie_name, path="/")
    return response


@router.get("/api/auth/session")
async def read_session(extractor: CredentialExtractor = Depends(get_extractor)) -> JSONResponse:
    """Client-safe view of the current session; ``{}`` when signed out."""
    claims = extractor.load_session(ambient_source())
    if claims is None:
        return JSONResponse({}, headers={"Cache-Control": "no-store"})
    return JSONResponse(SessionStore.public_session(claims), headers={"Cache-Control": "no-store"})
