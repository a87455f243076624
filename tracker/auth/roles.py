"""
Role Store
=============================================================================
Reads and writes the single role a user holds.

  get_role(user_id)        -> Role, `employee` when unknown or unset
  set_role(user_id, role)  -> User, or raises
        NotFoundError          the user does not exist
        ProtectedAccountError  the user is protected

The protected check is unconditional. It does not matter who is asking
(another admin included) or whether the new role equals the current one:
a protected account's role is never written through this path. That is
the only place the root-administrator rule is enforced; no other module
compares emails against a hard-coded admin.

Writes are plain overwrites (last write wins), no history is kept.
=============================================================================
"""

from dataclasses import dataclass
from uuid import UUID

from tracker.auth.rbac import DEFAULT_ROLE, Role, parse_role
from tracker.db.locks import EMPLOYEE_EMAILS
from tracker.db.models import User
from tracker.db.repositories import TrackerRepository
from tracker.errors import NotFoundError, ProtectedAccountError, ValidationError
from tracker.observability.logging import get_logger

logger = get_logger(__name__)


@dataclass
class RoleAssignment:
    email: str
    name: str
    role: Role
    protected: bool


class RoleStore:
    def __init__(self, repo: TrackerRepository) -> None:
        self.repo = repo

    async def get_role(self, user_id: UUID | None) -> Role:
        if user_id is None:
            return DEFAULT_ROLE
        user = await self.repo.get_user_by_id(user_id)
        if user is None:
            return DEFAULT_ROLE
        return parse_role(user.role) or DEFAULT_ROLE

    async def set_role(self, user_id: UUID, role: Role | str) -> User:
        new_role = parse_role(role)
        if new_role is None:
            raise ValidationError("Unknown role", invalid=[role])

        async with self.repo.atomic(EMPLOYEE_EMAILS):
            user = await self.repo.get_user_by_id(user_id)
            if user is None:
                raise NotFoundError("User not found")
            if user.protected:
                logger.warning("protected_role_change_blocked", requested_role=new_role.value)
                raise ProtectedAccountError()

            previous = user.role
            await self.repo.update_user_role(user, new_role.value)

        logger.info("role_changed", previous_role=previous, role=new_role.value)
        return user

    async def list_assignments(self) -> list[RoleAssignment]:
        return [
            RoleAssignment(
                email=user.email,
                name=user.name,
                role=parse_role(user.role) or DEFAULT_ROLE,
                protected=bool(user.protected),
            )
            for user, _department in await self.repo.list_users()
        ]
