"""Recover the Spotify credential from an inbound request.

The extractor works against anything exposing ``cookies`` and ``headers``
mappings. A FastAPI ``Request`` already does; code without a request object
in hand can use :func:`ambient_source`, which returns the connection published
by :class:`RequestContextMiddleware` for the request currently being served.
"""

from __future__ import annotations

import logging
import math
from contextvars import ContextVar
from typing import Any, Dict, Mapping, Optional, Protocol

from starlette.requests import HTTPConnection
from starlette.types import ASGIApp, Receive, Scope, Send

from diary.models import SessionCredential
from diary.session import SessionStore

logger = logging.getLogger(__name__)

_current_connection: ContextVar[Optional[HTTPConnection]] = ContextVar("diary_current_connection", default=None)


class CookieSource(Protocol):
    @property
    def cookies(self) -> Mapping[str, str]: ...

    @property
    def headers(self) -> Mapping[str, str]: ...


class RequestContextMiddleware:
    """Publish the current HTTP connection for :func:`ambient_source`."""

    def __init__(self, app: ASGIApp):
        self.app = app

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return
        token = _current_connection.set(HTTPConnection(scope))
        try:
            await self.app(scope, receive, send)
        finally:
            _current_connection.reset(token)


def ambient_source() -> CookieSource:
    connection = _current_connection.get()
    if connection is None:
        raise RuntimeError("No request is being served in this context")
    return connection


class CredentialExtractor:
    def __init__(self, store: SessionStore, cookie_name: str):
        self.store = store
        self.cookie_name = cookie_name

    def _artifact(self, source: CookieSource) -> Optional[str]:
        artifact = source.cookies.get(self.cookie_name)
        if artifact:
            return artifact
        authorization = source.headers.get("authorization")
        if authorization and authorization.lower().startswith("bearer "):
            return authorization.split(" ", 1)[1].strip() or None
        return None

    def load_session(self, source: CookieSource) -> Optional[Dict[str, Any]]:
        """Return the verified session claims, or None when there is no usable session."""
        artifact = self._artifact(source)
        if not artifact:
            return None
        return self.store.read(artifact)

    @staticmethod
    def credential_from_claims(claims: Mapping[str, Any]) -> Optional[SessionCredential]:
        access_token = claims.get("accessToken")
        if not isinstance(access_token, str) or not access_token:
            logger.info("Session for %s has no usable access token", claims.get("sub"))
            return None

        refresh_token = claims.get("refreshToken")
        expires_at = claims.get("expiresAt")
        # bool is an int subclass
        if isinstance(expires_at, bool) or not isinstance(expires_at, (int, float)) or not math.isfinite(expires_at):
            expires_at = None
        elif isinstance(expires_at, float):
            expires_at = math.floor(expires_at)
        return SessionCredential(
            access_token=access_token,
            refresh_token=refresh_token if isinstance(refresh_token, str) else None,
            expires_at=expires_at,
        )

    def extract(self, source: CookieSource) -> Optional[SessionCredential]:
        claims = self.load_session(source)
        if claims is None:
            return None
        return self.credential_from_claims(claims)
