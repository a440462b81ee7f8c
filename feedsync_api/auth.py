"""
Authentication for the sync endpoints.

Two mechanisms:
    - Shared secret for the scheduled trigger: ``X-Sync-Secret: <secret>``
      or ``Authorization: Bearer <secret>``.  With no secret configured
      every trigger is rejected.
    - Session authentication for the UI endpoints, behind the
      ``SessionAuthenticator`` protocol.  The default implementation
      accepts a configured opaque token from the ``feedsync_session``
      cookie or the ``X-Session-Token`` header.
"""

from __future__ import annotations

import hashlib
import secrets
from collections.abc import Iterable
from typing import Protocol, runtime_checkable

from starlette.requests import Request

SECRET_HEADER = "X-Sync-Secret"
SESSION_COOKIE = "feedsync_session"
SESSION_HEADER = "X-Session-Token"


def _bearer_token(request: Request) -> str | None:
    auth = request.headers.get("Authorization")
    if auth and auth.startswith("Bearer "):
        return auth[len("Bearer "):].strip()
    return None


def verify_trigger_secret(request: Request, expected: str | None) -> bool:
    """True when the request carries the configured trigger secret."""
    if not expected:
        return False
    for candidate in (request.headers.get(SECRET_HEADER), _bearer_token(request)):
        if candidate and secrets.compare_digest(candidate, expected):
            return True
    return False


@runtime_checkable
class SessionAuthenticator(Protocol):
    def authenticate(self, request: Request) -> str | None:
        """Return the actor name for an authenticated request, else None."""
        ...


class TokenSessionAuthenticator:
    """Accepts any of a fixed set of opaque session tokens."""

    def __init__(self, tokens: Iterable[str]):
        self._tokens = tuple(t for t in tokens if t)

    def authenticate(self, request: Request) -> str | None:
        token = request.cookies.get(SESSION_COOKIE) or request.headers.get(SESSION_HEADER)
        if not token:
            return None
        for known in self._tokens:
            if secrets.compare_digest(token, known):
                # Stable, non-reversible actor name for audit entries
                return "session:" + hashlib.sha256(token.encode("utf-8")).hexdigest()[:8]
        return None


def caller_ip(request: Request) -> str | None:
    """First X-Forwarded-For address, then X-Real-IP, then the socket peer."""
    forwarded = request.headers.get("X-Forwarded-For")
    if forwarded:
        first = forwarded.split(",")[0].strip()
        if first:
            return first
    real_ip = request.headers.get("X-Real-IP")
    if real_ip and real_ip.strip():
        return real_ip.strip()
    return request.client.host if request.client else None
