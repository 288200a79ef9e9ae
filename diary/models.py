from __future__ import annotations

import re
from datetime import datetime, timezone
from enum import Enum
from typing import Any, List, Optional

from pydantic import BaseModel, ConfigDict, Field

# fromisoformat before 3.11 only takes 3 or 6 fractional digits
_FRACTION = re.compile(r"\.(\d+)")


class SessionCredential(BaseModel):
    """Spotify credential embedded in the signed session cookie."""

    model_config = ConfigDict(frozen=True)

    access_token: str = Field(..., description="Spotify access token")
    refresh_token: Optional[str] = Field(None, description="Spotify refresh token")
    expires_at: Optional[int] = Field(None, description="Epoch seconds when the token expires")

    def is_expired(self, now: int) -> bool:
        # Unknown expiry is left for Spotify to reject.
        return self.expires_at is not None and self.expires_at <= now


class Image(BaseModel):
    url: Optional[str] = None
    height: Optional[int] = None
    width: Optional[int] = None


class Followers(BaseModel):
    total: int = 0
    href: Optional[str] = None


class Profile(BaseModel):
    model_config = ConfigDict(extra="allow")

    id: str
    display_name: Optional[str] = None
    email: Optional[str] = None
    country: Optional[str] = None
    product: Optional[str] = None
    type: Optional[str] = None
    uri: Optional[str] = None
    followers: Optional[Followers] = None
    images: List[Image] = Field(default_factory=list)


class Artist(BaseModel):
    model_config = ConfigDict(extra="allow")

    id: Optional[str] = None
    name: Optional[str] = None


class Album(BaseModel):
    model_config = ConfigDict(extra="allow")

    id: Optional[str] = None
    name: Optional[str] = None
    images: List[Image] = Field(default_factory=list)


class Track(BaseModel):
    model_config = ConfigDict(extra="allow")

    id: Optional[str] = None
    name: Optional[str] = None
    artists: List[Artist] = Field(default_factory=list)
    album: Optional[Album] = Field(default_factory=Album)
    duration_ms: Optional[int] = None
    popularity: Optional[int] = None

    @property
    def artist_label(self) -> str:
        return ", ".join(artist.name or "" for artist in self.artists)


class RecentlyPlayedItem(BaseModel):
    model_config = ConfigDict(extra="allow")

    # kept as Spotify sent it; read through played_at_dt
    played_at: Any = None
    track: Track
    liked: bool = False

    @property
    def played_at_dt(self) -> Optional[datetime]:
        return parse_played_at(self.played_at)


class RecentlyPlayedPage(BaseModel):
    model_config = ConfigDict(extra="allow")

    href: Optional[str] = None
    limit: Optional[int] = None
    next: Optional[str] = None
    cursors: Optional[dict] = None
    total: Optional[int] = None
    items: List[RecentlyPlayedItem] = Field(default_factory=list)


class ErrorCode(str, Enum):
    NOT_AUTHENTICATED = "not_authenticated"
    MISSING_ACCESS_TOKEN = "missing_access_token"
    TOKEN_EXPIRED = "token_expired"
    SPOTIFY_UNAUTHORIZED = "spotify_unauthorized"
    SPOTIFY_API_ERROR = "spotify_api_error"


class ErrorResponse(BaseModel):
    error: str
    code: Optional[ErrorCode] = None
    details: Any = None


def parse_played_at(value: Any) -> Optional[datetime]:
    """Parse a Spotify ``played_at`` timestamp, returning None when it is unusable."""
    if not isinstance(value, str) or not value:
        return None
    text = value.strip()
    if text.endswith("Z") or text.endswith("z"):
        text = text[:-1] + "+00:00"
    text = _FRACTION.sub(lambda match: "." + match.group(1)[:6].ljust(6, "0"), text, count=1)
    try:
        parsed = datetime.fromisoformat(text)
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed
