"""
Identity Resolution
=============================================================================
CONCEPT: One canonical principal, one resolver

OAuth profiles arrive in several shapes:

    {"email": "Ada@Example.com"}
    {"emails": [{"value": "ada@example.com"}], "displayName": "Ada"}
    {"id": "emp-000123"}                       <- pre-migration identifier

Principal.from_profile() reads the raw profile ONCE and produces:

    Principal(email="ada@example.com", display_name="Ada", subject="emp-000123")

Nothing downstream looks at the raw profile again.

RESOLUTION ORDER (first hit wins):
  1. email       -> users.email          (normalized, the natural key)
  2. durable id  -> users.id             (subject parses as a UUID)
  3. legacy id   -> legacy_identities    (LegacyIdentityShim, see below)

If nothing matches:
  - for authentication, resolve_or_provision() creates the user with role
    `employee` as long as the principal carries an email;
  - for role management the caller turns None into a 404.
=============================================================================
"""

import re
from dataclasses import dataclass
from typing import Any
from uuid import UUID

from tracker.config import settings
from tracker.db.locks import EMPLOYEE_EMAILS
from tracker.db.models import LEGACY_ID_LENGTH, LEGACY_KEY_LENGTH, NAME_LENGTH, User
from tracker.db.repositories import TrackerRepository
from tracker.errors import ValidationError
from tracker.observability.logging import get_logger

logger = get_logger(__name__)

_DIGITS = re.compile(r"[0-9]+")


def normalize_email(value: Any) -> str | None:
    if not isinstance(value, str):
        return None
    email = value.strip().lower()
    return email or None


def _first_email(emails: Any) -> str | None:
    if not isinstance(emails, list):
        return None
    for entry in emails:
        if isinstance(entry, dict):
            email = normalize_email(entry.get("value"))
        else:
            email = normalize_email(entry)
        if email:
            return email
    return None


def _as_uuid(value: str | None) -> UUID | None:
    if not value:
        return None
    try:
        return UUID(value)
    except ValueError:
        return None


@dataclass(frozen=True)
class Principal:
    """The authenticated caller, reduced to the fields the core uses."""

    email: str | None
    display_name: str | None = None
    subject: str | None = None

    @classmethod
    def from_profile(cls, profile: dict[str, Any]) -> "Principal":
        email = normalize_email(profile.get("email")) or _first_email(profile.get("emails"))

        display_name = profile.get("displayName") or profile.get("name")
        if isinstance(display_name, dict):
            # {"givenName": ..., "familyName": ...}
            parts = [display_name.get("givenName"), display_name.get("familyName")]
            display_name = " ".join(part for part in parts if part) or None
        if not isinstance(display_name, str) or not display_name.strip():
            display_name = None

        subject = profile.get("id") or profile.get("sub")
        subject = str(subject).strip() if subject not in (None, "") else None

        return cls(
            email=email,
            display_name=display_name.strip() if display_name else None,
            subject=subject or None,
        )

    @property
    def fallback_name(self) -> str:
        if self.display_name:
            return self.display_name
        if self.email:
            return self.email.split("@", 1)[0]
        return "Unknown"


# =============================================================================
# Legacy identifier shim
# =============================================================================
# MIGRATION SHIM: remove once every identity carries a durable id.
#
# Before the move to UUID keys, users were identified by composite ids like
# "emp-000123" or "1700000123". The import script records, for every such
# id, a deterministic key built from its digits ("legacy:123") in the
# legacy_identities table. A principal that presents only an old id is
# resolved through that table and nowhere else: no prefix or fuzzy matching
# against live data.
#
# Different ids can derive the same key ("emp-12-3" and "emp-123"). A key
# stays with the first user it was registered for; a clash is reported.
#
# Turn it off with LEGACY_ID_RESOLUTION_ENABLED=false.
# =============================================================================
def legacy_key(legacy_id: str | None) -> str | None:
    """
    Deterministic lookup key for a pre-migration id.

    All digit runs are concatenated and leading zeros dropped, so
    prefixes and padding do not matter:

        legacy_key("emp-000123") == legacy_key("123") == "legacy:123"
        legacy_key("admin")      is None
    """
    if not legacy_id:
        return None
    digits = "".join(_DIGITS.findall(legacy_id))
    if not digits:
        return None
    return f"legacy:{digits.lstrip('0') or '0'}"


class LegacyIdentityShim:
    def __init__(self, repo: TrackerRepository) -> None:
        self.repo = repo

    async def lookup(self, legacy_id: str) -> UUID | None:
        key = legacy_key(legacy_id)
        if key is None or len(key) > LEGACY_KEY_LENGTH:
            return None
        entry = await self.repo.get_legacy_identity(key)
        if entry is None:
            return None
        logger.info("legacy_identity_resolved", legacy_key=key)
        return entry.user_id

    async def register(self, legacy_id: str, user_id: UUID) -> str | None:
        key = legacy_key(legacy_id)
        if key is None:
            return None
        if len(key) > LEGACY_KEY_LENGTH or len(legacy_id) > LEGACY_ID_LENGTH:
            raise ValidationError("Legacy id is too long to register", invalid=[legacy_id])
        await self.repo.register_legacy_identity(key, legacy_id, user_id)
        return key


# =============================================================================
# Resolver
# =============================================================================
class IdentityResolver:
    def __init__(self, repo: TrackerRepository, legacy_enabled: bool | None = None) -> None:
        self.repo = repo
        if legacy_enabled is None:
            legacy_enabled = settings.legacy_id_resolution_enabled
        self.legacy = LegacyIdentityShim(repo) if legacy_enabled else None

    async def resolve_user(self, principal: Principal) -> User | None:
        if principal.email:
            user = await self.repo.get_user_by_email(principal.email)
            if user is not None:
                return user

        durable_id = _as_uuid(principal.subject)
        if durable_id is not None:
            user = await self.repo.get_user_by_id(durable_id)
            if user is not None:
                return user

        if self.legacy is not None and principal.subject and durable_id is None:
            user_id = await self.legacy.lookup(principal.subject)
            if user_id is not None:
                return await self.repo.get_user_by_id(user_id)

        return None

    async def resolve(self, principal: Principal) -> UUID | None:
        """Canonical user id for the principal, or None."""
        user = await self.resolve_user(principal)
        return user.id if user is not None else None

    async def resolve_or_provision(self, principal: Principal) -> User | None:
        """
        Resolve for authentication purposes.

        Unknown principals with an email become new `employee` users.
        Returns None only when there is nothing to key a new user on.
        """
        user = await self.resolve_user(principal)
        if user is not None or principal.email is None:
            return user

        async with self.repo.atomic(EMPLOYEE_EMAILS):
            user, created = await self.repo.get_or_create_user(
                email=principal.email,
                name=principal.fallback_name[:NAME_LENGTH],
            )
        if created:
            logger.info("user_provisioned", role=user.role)
        return user

    async def resolve_target(self, email: str | None = None, user_id: str | None = None) -> User | None:
        """Resolve the target of a role-management call (email or id)."""
        return await self.resolve_user(
            Principal(email=normalize_email(email), subject=(user_id or "").strip() or None)
        )
