from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Sequence, Union

import httpx

logger = logging.getLogger(__name__)

RECENTLY_PLAYED_LIMIT = 50
# Spotify accepts at most 50 ids per /me/tracks/contains call
CONTAINS_BATCH_SIZE = 50


@dataclass(frozen=True)
class UpstreamError:
    """A failed Spotify call. ``status`` is None when no HTTP response arrived."""

    status: Optional[int]
    body: Any = None
    reason: Optional[str] = None


Result = Union[Any, UpstreamError]


class SpotifyClient:
    """Async caller for the few Spotify Web API endpoints the diary needs.

    Calls never raise for upstream failures; they return an :class:`UpstreamError`
    instead, and the caller decides what it means.
    """

    def __init__(
        self,
        base_url: str = "https://api.spotify.com/v1",
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        kwargs: Dict[str, Any] = {"base_url": base_url.rstrip("/")}
        if timeout is not None:
            kwargs["timeout"] = timeout
        if transport is not None:
            kwargs["transport"] = transport
        self._http = httpx.AsyncClient(**kwargs)

    async def aclose(self) -> None:
        await self._http.aclose()

    async def _get(self, access_token: str, path: str, params: Optional[Dict[str, Any]] = None) -> Result:
        headers = {
            "Authorization": f"Bearer {access_token}",
            # Listening data is live; never serve it from a cache.
            "Cache-Control": "no-cache",
        }
        try:
            response = await self._http.get(path, params=params, headers=headers)
        except httpx.HTTPError as exc:
            logger.warning("Spotify %s request failed: %s", path, exc.__class__.__name__)
            return UpstreamError(status=None, reason=str(exc) or exc.__class__.__name__)

        if response.is_success:
            try:
                return response.json()
            except ValueError:
                return UpstreamError(status=response.status_code, reason="invalid JSON")

        try:
            body = response.json()
        except ValueError:
            body = None
        logger.warning("Spotify %s returned %s", path, response.status_code, extra={"body": body})
        return UpstreamError(status=response.status_code, body=body)

    async def fetch_profile(self, access_token: str) -> Result:
        """Fetch the current user's profile."""
        return await self._get(access_token, "/me")

    async def fetch_recently_played(self, access_token: str) -> Result:
        """Fetch the 50 most recent plays. Spotify pages no further back for this view."""
        return await self._get(
            access_token,
            "/me/player/recently-played",
            params={"limit": RECENTLY_PLAYED_LIMIT},
        )

    async def fetch_liked_status(self, access_token: str, track_ids: Sequence[str]) -> Union[List[bool], UpstreamError]:
        """Check which tracks are in the user's library.

        The result is aligned by position with ``track_ids``.
        """
        if not track_ids:
            return []

        liked: List[bool] = []
        for start in range(0, len(track_ids), CONTAINS_BATCH_SIZE):
            batch = track_ids[start:start + CONTAINS_BATCH_SIZE]
            result = await self._get(access_token, "/me/tracks/contains", params={"ids": ",".join(batch)})
            if isinstance(result, UpstreamError):
                return result
            if not isinstance(result, list):
                return UpstreamError(status=200, body=result, reason="unexpected payload")
            flags = [bool(flag) for flag in result[:len(batch)]]
            # keep later batches aligned when Spotify answers short
            flags.extend([False] * (len(batch) - len(flags)))
            liked.extend(flags)
        return liked
