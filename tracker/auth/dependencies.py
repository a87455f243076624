"""
Access Control Dependencies
=============================================================================
CONCEPT: One dependency chain in front of every protected route

    HTTP Request
      -> get_principal          session token (Bearer header or cookie)
        -> get_access_context   Identity Resolver + Role Store
          -> require_permission(resource, action)
            -> route handler    receives an AccessContext

A route declares WHAT it touches, never WHO may touch it:

    @router.put("/roles")
    async def update_role(
        body: RoleUpdateRequest,
        ctx: AccessContext = Depends(require_permission(Resource.ROLES, Action.WRITE)),
    ):
        ...

The matrix in tracker/auth/rbac.py decides; the route never compares roles
or emails itself.

FAILURES:
  no token / bad token / unresolvable principal  -> AuthenticationError (401)
  evaluator says deny                            -> PermissionDeniedError (403)
Both are raised before the handler body runs.

Tests swap the database through app.dependency_overrides[get_db_session];
everything above it runs for real.
=============================================================================
"""

from dataclasses import dataclass
from typing import Callable
from uuid import UUID

import structlog
from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession

from tracker.auth.identity import IdentityResolver, Principal
from tracker.auth.rbac import Action, Decision, Resource, Role, evaluate
from tracker.auth.roles import RoleStore
from tracker.auth.session import read_session_token
from tracker.config import settings
from tracker.db.engine import get_db_session
from tracker.db.repositories import TrackerRepository
from tracker.errors import AuthenticationError, PermissionDeniedError
from tracker.observability.logging import get_logger
from tracker.observability.metrics import record_access_decision

logger = get_logger(__name__)

# auto_error=False: a missing header is not an error yet, the session cookie
# is checked next.
bearer_scheme = HTTPBearer(
    auto_error=False,
    description="Session token issued after OAuth sign-in",
)


@dataclass(frozen=True)
class AccessContext:
    """What a handler knows about its caller once access was granted."""

    user_id: UUID
    email: str
    role: Role


async def get_repository(db: AsyncSession = Depends(get_db_session)) -> TrackerRepository:
    return TrackerRepository(db)


def _session_token(request: Request, credentials: HTTPAuthorizationCredentials | None) -> str | None:
    if credentials is not None and credentials.credentials:
        return credentials.credentials
    return request.cookies.get(settings.session_cookie_name)


async def get_principal(
    request: Request,
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
) -> Principal:
    """
    Read the session token and normalize the embedded OAuth profile.

    RAISES:
      AuthenticationError: no token, or the token does not verify.
    """
    token = _session_token(request, credentials)
    if not token:
        raise AuthenticationError("Authentication required")

    try:
        profile = read_session_token(token)
    except ValueError as e:
        logger.info("session_rejected", reason=str(e))
        raise AuthenticationError("Invalid or expired session") from e

    return Principal.from_profile(profile)


async def get_access_context(
    principal: Principal = Depends(get_principal),
    repo: TrackerRepository = Depends(get_repository),
) -> AccessContext:
    """
    Resolve the principal to a canonical user and look up its role.

    Unknown principals that carry an email are provisioned as `employee`.
    """
    user = await IdentityResolver(repo).resolve_or_provision(principal)
    if user is None:
        raise AuthenticationError("Could not resolve an identity for this session")

    role = await RoleStore(repo).get_role(user.id)
    structlog.contextvars.bind_contextvars(role=role.value)
    return AccessContext(user_id=user.id, email=user.email, role=role)


def require_permission(resource: Resource, action: Action) -> Callable:
    """
    Dependency factory: allow the request only if the caller's role holds
    `action` on `resource`.

    USAGE:
        ctx: AccessContext = Depends(require_permission(Resource.TASKS, Action.BULK_CREATE))
    """

    async def permission_checker(
        ctx: AccessContext = Depends(get_access_context),
    ) -> AccessContext:
        decision = evaluate(ctx.role, resource, action)
        allowed = decision is Decision.ALLOW
        record_access_decision(resource.value, action.value, allowed)

        if not allowed:
            logger.warning(
                "access_denied",
                resource=resource.value,
                action=action.value,
                role=ctx.role.value,
            )
            raise PermissionDeniedError(resource.value, action.value, ctx.role.value)
        return ctx

    return permission_checker


async def get_optional_context(
    request: Request,
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
    repo: TrackerRepository = Depends(get_repository),
) -> AccessContext | None:
    """Like get_access_context, but None instead of 401. Used by /auth/status."""
    try:
        principal = await get_principal(request, credentials)
        return await get_access_context(principal, repo)
    except AuthenticationError:
        return None
