"""
Session Tokens: the hand-off point from the OAuth collaborator
=============================================================================
CONCEPT: Who authenticates, and what do we keep?

The OAuth handshake (Google sign-in) is outside this service. When it
succeeds, the collaborator holds an authenticated PROFILE, a loosely
shaped dict such as:

    {"id": "1098...", "displayName": "Ada Lovelace",
     "emails": [{"value": "Ada@Example.com", "verified": true}]}

It calls issue_session_token(profile) and gives the resulting signed token
to the browser (Authorization: Bearer <token> or the session cookie).
On each request the access-control dependency calls
read_session_token(token) to get the profile back, unmodified.

The token is an HS256 JWT:

    {"sub": "<email or id>", "profile": {...}, "iat": ..., "exp": ...}

The signature only guarantees the profile was not TAMPERED with; the
payload is readable by anyone holding the token, so it carries only what
the OAuth provider already exposed. Interpreting the profile (which email
counts, which id) is the Identity Resolver's job, not this module's.
=============================================================================
"""

from datetime import datetime, timedelta, timezone
from typing import Any

from jose import JWTError, jwt

from tracker.config import settings


def issue_session_token(
    profile: dict[str, Any],
    expires_delta: timedelta | None = None,
) -> str:
    """
    Wrap an authenticated OAuth profile in a signed session token.

    `sub` is filled with whatever identifier the profile offers first
    (top-level email, first of `emails`, then `id`) purely for log
    correlation; resolution never reads it.
    """
    now = datetime.now(timezone.utc)
    if expires_delta is None:
        expires_delta = timedelta(minutes=settings.session_expire_minutes)

    claims = {
        "sub": _subject_hint(profile),
        "profile": dict(profile),
        "iat": now,
        "exp": now + expires_delta,
    }
    return jwt.encode(claims, settings.session_secret_key, algorithm=settings.session_algorithm)


def read_session_token(token: str) -> dict[str, Any]:
    """
    Verify a session token and return the embedded profile.

    RAISES:
      ValueError: expired, tampered, malformed, or missing its profile.
    """
    try:
        payload = jwt.decode(
            token,
            settings.session_secret_key,
            algorithms=[settings.session_algorithm],
        )
    except JWTError as e:
        raise ValueError(f"Could not validate session: {e}") from e

    profile = payload.get("profile")
    if not isinstance(profile, dict):
        raise ValueError("Session payload missing profile")
    return profile


def _subject_hint(profile: dict[str, Any]) -> str:
    email = profile.get("email")
    if isinstance(email, str) and email:
        return email
    emails = profile.get("emails")
    if isinstance(emails, list) and emails:
        first = emails[0]
        if isinstance(first, dict) and first.get("value"):
            return str(first["value"])
        if isinstance(first, str):
            return first
    return str(profile.get("id") or profile.get("sub") or "")
