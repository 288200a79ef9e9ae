"""Signed session cookie holding the user's Spotify credential.

The cookie value is an HS256 JWT. Its payload carries the usual session
claims (``sub``, ``name``, ``email``, ``picture``, ``iat``, ``exp``) plus the
embedded credential under ``accessToken``, ``refreshToken`` and ``expiresAt``.
Only the server can read it: the cookie is httpOnly, and anything forwarded to
client code goes through :meth:`SessionStore.public_session`, which drops the
credential.
"""

from __future__ import annotations

import logging
import time
from datetime import datetime, timezone
from typing import Any, Dict, Optional

import jwt  # PyJWT

from diary.config import ConfigurationError
from diary.models import SessionCredential

logger = logging.getLogger(__name__)

_ALGORITHM = "HS256"
_CREDENTIAL_CLAIMS = ("accessToken", "refreshToken", "expiresAt")


class SessionStore:
    def __init__(self, secret: str, max_age: int = 30 * 24 * 60 * 60, secure: bool = False):
        if not secret:
            raise ConfigurationError("A session signing secret is required")
        self._secret = secret
        self.max_age = max_age
        self.secure = secure

    def issue(self, credential: SessionCredential, claims: Optional[Dict[str, Any]] = None) -> str:
        """Create the signed session artifact for a freshly signed-in user."""
        now = int(time.time())
        payload: Dict[str, Any] = {
            key: value for key, value in (claims or {}).items() if value is not None
        }
        payload.update(
            {
                "iat": now,
                "exp": now + self.max_age,
                "accessToken": credential.access_token,
            }
        )
        if credential.refresh_token is not None:
            payload["refreshToken"] = credential.refresh_token
        if credential.expires_at is not None:
            payload["expiresAt"] = credential.expires_at
        return jwt.encode(payload, self._secret, algorithm=_ALGORITHM)

    def read(self, artifact: str) -> Optional[Dict[str, Any]]:
        """Verify and decode a session artifact.

        Returns the claims on success, or None if the signature is invalid,
        the session has expired or the value is not a token at all.
        """
        try:
            return jwt.decode(artifact, self._secret, algorithms=[_ALGORITHM])
        except jwt.ExpiredSignatureError:
            logger.info("Session artifact expired")
            return None
        except jwt.InvalidTokenError:
            logger.info("Rejected session artifact with invalid signature or format")
            return None

    def cookie_options(self) -> Dict[str, Any]:
        return {
            "max_age": self.max_age,
            "httponly": True,
            "samesite": "lax",
            "secure": self.secure,
            "path": "/",
        }

    @staticmethod
    def public_session(claims: Dict[str, Any]) -> Dict[str, Any]:
        """Shape session claims for client code, never including the credential."""
        safe = {key: value for key, value in claims.items() if key not in _CREDENTIAL_CLAIMS}
        session: Dict[str, Any] = {
            "user": {
                "id": safe.get("sub"),
                "name": safe.get("name"),
                "email": safe.get("email"),
                "image": safe.get("picture"),
            }
        }
        exp = safe.get("exp")
        if isinstance(exp, (int, float)):
            session["expires"] = datetime.fromtimestamp(exp, tz=timezone.utc).isoformat()
        return session
