"""FastAPI authentication dependencies."""

from __future__ import annotations

from fastapi import Depends, Request, Security
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession

from ctfscore.auth.tokens import TokenVerifier
from ctfscore.database import get_session
from ctfscore.db.models import Event, User
from ctfscore.dependencies import get_app_settings
from ctfscore.errors import AuthError, ForbiddenError

_bearer = HTTPBearer(auto_error=False)

ADMIN_ROLE = "admin"


def get_token_verifier(request: Request) -> TokenVerifier:
    verifier = getattr(request.app.state, "token_verifier", None)
    if verifier is None:
        verifier = TokenVerifier.from_settings(get_app_settings(request))
    return verifier


async def get_current_uid(
    credentials: HTTPAuthorizationCredentials | None = Security(_bearer),
    verifier: TokenVerifier = Depends(get_token_verifier),
) -> str:
    """Verify the bearer token and return its subject. Raises 401."""
    if credentials is None or not credentials.credentials:
        raise AuthError("Missing or invalid Authorization header")
    return verifier.verify(credentials.credentials)


async def get_current_user(
    uid: str = Depends(get_current_uid),
    db: AsyncSession = Depends(get_session),
) -> User:
    """
    Load the caller's profile.

    Raises 403 when the profile does not exist or the account is disabled.
    """
    user = await db.get(User, uid)
    if user is None:
        raise ForbiddenError("User profile not found", reason="profile_not_found")
    if user.disabled:
        raise ForbiddenError("Account disabled", reason="account_disabled")
    return user


async def require_admin(user: User = Depends(get_current_user)) -> User:
    if user.role != ADMIN_ROLE:
        raise ForbiddenError("Admin access required")
    return user


def is_admin_or_owner(user: User, event: Event) -> bool:
    return user.role == ADMIN_ROLE or (event.owner_id is not None and event.owner_id == user.uid)
