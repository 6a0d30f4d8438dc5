"""HS256 access token verification.

Tokens are issued by the identity provider. The service only needs the
subject (``uid``); ``create_access_token`` exists for tooling and tests.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Any

import jwt

from ctfscore.config import Settings, get_settings
from ctfscore.errors import AuthError


class TokenVerifier:
    """Validates bearer tokens and extracts the user id."""

    def __init__(self, secret: str, algorithm: str = "HS256", issuer: str | None = None) -> None:
        self.secret = secret
        self.algorithm = algorithm
        self.issuer = issuer

    @classmethod
    def from_settings(cls, settings: Settings) -> TokenVerifier:
        return cls(settings.jwt_secret, settings.jwt_algorithm, settings.jwt_issuer or None)

    def verify(self, token: str) -> str:
        """Return the token subject.

        Raises:
            AuthError: signature, expiry, issuer or subject is invalid.
        """
        try:
            payload = jwt.decode(
                token,
                self.secret,
                algorithms=[self.algorithm],
                issuer=self.issuer,
                options={"require": ["sub", "exp"]},
            )
        except jwt.ExpiredSignatureError as e:
            raise AuthError("Token has expired") from e
        except jwt.InvalidTokenError as e:
            raise AuthError(f"Invalid token: {e}") from e

        uid = payload.get("sub")
        if not isinstance(uid, str) or not uid:
            raise AuthError("Token has no subject")
        return uid


def create_access_token(
    uid: str,
    settings: Settings | None = None,
    expires_in: timedelta | None = None,
) -> str:
    """
    Create a signed access token for ``uid``.

    Args:
        uid: The user id placed in the ``sub`` claim.
        settings: Signing configuration (defaults to the environment).
        expires_in: Lifetime override; negative values mint expired tokens.

    Returns:
        Encoded JWT string.
    """
    settings = settings or get_settings()
    now = datetime.now(timezone.utc)
    lifetime = expires_in if expires_in is not None else timedelta(minutes=settings.jwt_access_token_expire_minutes)
    payload: dict[str, Any] = {
        "sub": uid,
        "iat": now,
        "exp": now + lifetime,
        "iss": settings.jwt_issuer,
        "type": "access",
    }
    return jwt.encode(payload, settings.jwt_secret, algorithm=settings.jwt_algorithm)
