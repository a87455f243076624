"""
Role Management Endpoints
=============================================================================
  GET /api/roles   roles/read    every user with their role
  PUT /api/roles   roles/write   {"email": "ada@example.com", "role": "manager"}
                                 or {"userId": "<uuid>", "role": "manager"}

Only admins hold `roles`. The target is resolved through the same Identity
Resolver as sign-in, so a legacy id works here as long as the migration
shim is on. Unknown target -> 404; protected target -> 403, whoever asks.
=============================================================================
"""

from fastapi import APIRouter, Depends
from pydantic import AliasChoices, BaseModel, Field

from tracker.auth.dependencies import AccessContext, get_repository, require_permission
from tracker.auth.identity import IdentityResolver
from tracker.auth.rbac import Action, Resource
from tracker.auth.roles import RoleAssignment, RoleStore
from tracker.db.repositories import TrackerRepository
from tracker.errors import NotFoundError, ValidationError

router = APIRouter(prefix="/roles", tags=["Roles"])


class RoleAssignmentResponse(BaseModel):
    email: str
    name: str
    role: str
    protected: bool


class RoleUpdateRequest(BaseModel):
    email: str | None = None
    user_id: str | None = Field(None, validation_alias=AliasChoices("userId", "user_id"))
    role: str


def _assignment(assignment: RoleAssignment) -> RoleAssignmentResponse:
    return RoleAssignmentResponse(
        email=assignment.email,
        name=assignment.name,
        role=assignment.role.value,
        protected=assignment.protected,
    )


@router.get("", response_model=list[RoleAssignmentResponse])
async def list_roles(
    ctx: AccessContext = Depends(require_permission(Resource.ROLES, Action.READ)),
    repo: TrackerRepository = Depends(get_repository),
):
    return [_assignment(assignment) for assignment in await RoleStore(repo).list_assignments()]


@router.put("", response_model=RoleAssignmentResponse)
async def update_role(
    body: RoleUpdateRequest,
    ctx: AccessContext = Depends(require_permission(Resource.ROLES, Action.WRITE)),
    repo: TrackerRepository = Depends(get_repository),
):
    if not body.email and not body.user_id:
        raise ValidationError("Provide the target's `email` or `userId`", invalid=[])

    target = await IdentityResolver(repo).resolve_target(email=body.email, user_id=body.user_id)
    if target is None:
        raise NotFoundError("User not found")

    user = await RoleStore(repo).set_role(target.id, body.role)
    return RoleAssignmentResponse(
        email=user.email,
        name=user.name,
        role=user.role,
        protected=bool(user.protected),
    )
