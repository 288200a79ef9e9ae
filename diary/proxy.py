"""Authenticated JSON proxy in front of the Spotify Web API.

Every handler runs the same pipeline: read the signed session, check that
it carries a usable and unexpired access token, call Spotify, shape the
result. Failures are mapped to a small set of error codes so the browser can
tell "sign in again" (401) apart from "try again later" (502).
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Any, Dict, List, Sequence, Union

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse

from diary.credentials import CredentialExtractor
from diary.dependencies import get_extractor, get_spotify
from diary.models import ErrorCode, ErrorResponse, RecentlyPlayedItem, RecentlyPlayedPage, SessionCredential
from diary.spotify_client import SpotifyClient, UpstreamError
from diary.stats import summarize

logger = logging.getLogger(__name__)

NO_STORE = {"Cache-Control": "no-store"}

MISSING_TOKEN_MESSAGE = "Your session is missing a Spotify access token. Please sign out and sign in again."
EXPIRED_TOKEN_MESSAGE = "Your Spotify access token has expired. Please sign out and sign in again."
UNAUTHORIZED_MESSAGE = "Spotify authorization failed. Please re-authenticate."
API_ERROR_MESSAGE = "Spotify API error. Please try again later."


@dataclass(frozen=True)
class Resource:
    """Per-endpoint wording for the shared pipeline."""

    name: str
    not_authenticated: str
    unexpected: str


PROFILE = Resource(
    name="/me",
    not_authenticated="You must be authenticated to view your Spotify profile.",
    unexpected="Failed to fetch Spotify profile.",
)
RECENTLY_PLAYED = Resource(
    name="recently-played",
    not_authenticated="You must be authenticated to view recent activity.",
    unexpected="Failed to fetch recently played tracks.",
)


router = APIRouter(prefix="/api/spotify")


def error_response(status_code: int, code: ErrorCode, message: str) -> JSONResponse:
    body = ErrorResponse(error=message, code=code)
    return JSONResponse(body.model_dump(mode="json", exclude_none=True), status_code=status_code, headers=NO_STORE)


def authorize(request: Request, extractor: CredentialExtractor, resource: Resource) -> Union[SessionCredential, JSONResponse]:
    """Return the request's credential, or the 401 response explaining why there is none."""
    claims = extractor.load_session(request)
    if claims is None:
        return error_response(401, ErrorCode.NOT_AUTHENTICATED, resource.not_authenticated)

    credential = extractor.credential_from_claims(claims)
    if credential is None:
        return error_response(401, ErrorCode.MISSING_ACCESS_TOKEN, MISSING_TOKEN_MESSAGE)

    if credential.is_expired(int(time.time())):
        return error_response(401, ErrorCode.TOKEN_EXPIRED, EXPIRED_TOKEN_MESSAGE)

    return credential


def upstream_failure(error: UpstreamError, resource: Resource) -> JSONResponse:
    logger.error(
        "Spotify %s fetch failed",
        resource.name,
        extra={"status": error.status, "body": error.body, "reason": error.reason},
    )
    if error.status == 401:
        return error_response(401, ErrorCode.SPOTIFY_UNAUTHORIZED, UNAUTHORIZED_MESSAGE)
    return error_response(502, ErrorCode.SPOTIFY_API_ERROR, API_ERROR_MESSAGE)


async def liked_flags(spotify: SpotifyClient, access_token: str, items: Sequence[RecentlyPlayedItem]) -> List[bool]:
    """Liked flag per item, in item order. Any failure degrades to all False."""
    positions = [index for index, item in enumerate(items) if item.track.id]
    track_ids = [items[index].track.id for index in positions]

    try:
        result = await spotify.fetch_liked_status(access_token, track_ids)
    except Exception:
        logger.warning("Failed to fetch liked status for tracks", exc_info=True)
        return [False] * len(items)
    if isinstance(result, UpstreamError):
        logger.warning("Failed to fetch liked status for tracks", extra={"status": result.status, "reason": result.reason})
        return [False] * len(items)

    flags = [False] * len(items)
    for position, liked in zip(positions, result):
        flags[position] = bool(liked)
    return flags


async def recently_played_with_likes(spotify: SpotifyClient, access_token: str) -> Union[Dict[str, Any], UpstreamError]:
    result = await spotify.fetch_recently_played(access_token)
    if isinstance(result, UpstreamError):
        return result

    page = RecentlyPlayedPage.model_validate(result)
    # The likes lookup needs the ids from the first call, so it runs after it.
    flags = await liked_flags(spotify, access_token, page.items)
    return {
        **result,
        "items": [{**raw, "liked": liked} for raw, liked in zip(result.get("items", []), flags)],
    }


@router.get("/profile")
async def profile(
    request: Request,
    extractor: CredentialExtractor = Depends(get_extractor),
    spotify: SpotifyClient = Depends(get_spotify),
) -> JSONResponse:
    """Return the signed-in user's Spotify profile as Spotify sent it."""
    try:
        credential = authorize(request, extractor, PROFILE)
        if isinstance(credential, JSONResponse):
            return credential

        result = await spotify.fetch_profile(credential.access_token)
        if isinstance(result, UpstreamError):
            return upstream_failure(result, PROFILE)
        return JSONResponse(result, status_code=200, headers=NO_STORE)
    except Exception:
        logger.exception("Unexpected error fetching Spotify profile")
        return error_response(502, ErrorCode.SPOTIFY_API_ERROR, PROFILE.unexpected)


@router.get("/recently-played")
async def recently_played(
    request: Request,
    extractor: CredentialExtractor = Depends(get_extractor),
    spotify: SpotifyClient = Depends(get_spotify),
) -> JSONResponse:
    """Return the last 50 plays, each marked with whether the track is liked."""
    try:
        credential = authorize(request, extractor, RECENTLY_PLAYED)
        if isinstance(credential, JSONResponse):
            return credential

        payload = await recently_played_with_likes(spotify, credential.access_token)
        if isinstance(payload, UpstreamError):
            return upstream_failure(payload, RECENTLY_PLAYED)
        return JSONResponse(payload, status_code=200, headers=NO_STORE)
    except Exception:
        logger.exception("Unexpected error fetching recently played")
        return error_response(502, ErrorCode.SPOTIFY_API_ERROR, RECENTLY_PLAYED.unexpected)


@router.get("/recently-played/summary")
async def recently_played_summary(
    request: Request,
    extractor: CredentialExtractor = Depends(get_extractor),
    spotify: SpotifyClient = Depends(get_spotify),
) -> JSONResponse:
    try:
        credential = authorize(request, extractor, RECENTLY_PLAYED)
        if isinstance(credential, JSONResponse):
            return credential

        payload = await recently_played_with_likes(spotify, credential.access_token)
        if isinstance(payload, UpstreamError):
            return upstream_failure(payload, RECENTLY_PLAYED)
        page = RecentlyPlayedPage.model_validate(payload)
        return JSONResponse(summarize(page.items), status_code=200, headers=NO_STORE)
    except Exception:
        logger.exception("Unexpected error summarizing recently played")
        return error_response(502, ErrorCode.SPOTIFY_API_ERROR, RECENTLY_PLAYED.unexpected)
