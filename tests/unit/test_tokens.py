"""Bearer token verification."""

from __future__ import annotations

from datetime import timedelta

import jwt
import pytest

from ctfscore.auth.tokens import TokenVerifier, create_access_token
from ctfscore.config import Settings
from ctfscore.errors import AuthError


@pytest.fixture
def settings() -> Settings:
    return Settings(jwt_secret="unit-secret", jwt_issuer="ctfscore")


@pytest.fixture
def verifier(settings: Settings) -> TokenVerifier:
    return TokenVerifier.from_settings(settings)


class TestVerify:
    def test_valid_token(self, settings: Settings, verifier: TokenVerifier):
        assert verifier.verify(create_access_token("user-1", settings)) == "user-1"

    def test_expired(self, settings: Settings, verifier: TokenVerifier):
        token = create_access_token("user-1", settings, expires_in=timedelta(minutes=-5))
        with pytest.raises(AuthError, match="expired"):
            verifier.verify(token)

    def test_wrong_secret(self, settings: Settings):
        token = create_access_token("user-1", settings)
        with pytest.raises(AuthError):
            TokenVerifier("other-secret", issuer="ctfscore").verify(token)

    def test_wrong_issuer(self, settings: Settings):
        token = create_access_token("user-1", settings)
        with pytest.raises(AuthError):
            TokenVerifier("unit-secret", issuer="someone-else").verify(token)

    def test_garbage(self, verifier: TokenVerifier):
        with pytest.raises(AuthError):
            verifier.verify("not-a-jwt")

    def test_missing_subject(self, verifier: TokenVerifier):
        token = jwt.encode({"exp": 9999999999, "iss": "ctfscore"}, "unit-secret", algorithm="HS256")
        with pytest.raises(AuthError):
            verifier.verify(token)

    def test_error_is_401(self, verifier: TokenVerifier):
        with pytest.raises(AuthError) as exc_info:
            verifier.verify("")
        assert exc_info.value.status_code == 401
