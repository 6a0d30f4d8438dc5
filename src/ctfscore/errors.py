"""Domain error taxonomy.

Every error carries an HTTP status, a machine-readable ``reason`` and
optional hint fields so clients can render countdowns or remaining attempts.
``setup_error_handlers`` turns them into JSON responses.
"""

from __future__ import annotations

from typing import Any


class CTFError(Exception):
    """Base class for errors surfaced to API clients."""

    status_code: int = 500
    reason: str = "internal_error"

    def __init__(self, message: str, *, reason: str | None = None, **hints: Any) -> None:
        super().__init__(message)
        self.message = message
        if reason is not None:
            self.reason = reason
        self.hints = hints

    def to_dict(self) -> dict[str, Any]:
        return {"detail": self.message, "reason": self.reason, **self.hints}


class ValidationError(CTFError):
    status_code = 400
    reason = "validation_error"


class AuthError(CTFError):
    status_code = 401
    reason = "unauthenticated"


class ForbiddenError(CTFError):
    status_code = 403
    reason = "forbidden"


class NotFoundError(CTFError):
    status_code = 404
    reason = "not_found"


class AttemptsExhaustedError(CTFError):
    """Max attempts on a challenge reached."""

    status_code = 403
    reason = "attempts_exhausted"


class RateLimitError(CTFError):
    """Either a post-wrong-answer cooldown or the per-user sliding window."""

    status_code = 429
    reason = "rate_limited"

    COOLDOWN = "cooldown_active"
    WINDOW = "rate_limited"

    @property
    def retry_after(self) -> int:
        return int(self.hints.get("cooldownRemaining", self.hints.get("retryAfter", 1)))


class InternalError(CTFError):
    status_code = 500
    reason = "internal_error"
