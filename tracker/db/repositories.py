"""
Data Access Layer (Repository)
=============================================================================
CONCEPT: Repository Pattern

Business logic (identity resolution, role store, bulk reconciliation) never
builds queries itself. It talks to TrackerRepository, which wraps one
AsyncSession and offers get / upsert / bulk-upsert operations over the
tracker's entities.

TRANSACTIONS:
  Repository methods only add and flush. Nothing is committed until the
  caller leaves a `repo.atomic(namespace)` block:

      async with repo.atomic(TASK_NAMES):
          existing = await repo.get_existing_name_keys(keys)
          ...
          await repo.add_tasks(new_tasks)
      # committed here, or rolled back if anything raised

  `atomic` serializes writers on the same namespace (see db/locks.py), so
  the duplicate-detection read and the write that follows cannot be
  interleaved with another writer.

NOT FOUND:
  Lookups return None (or an empty collection). Raising NotFoundError is
  the caller's decision.
=============================================================================
"""

from contextlib import asynccontextmanager, nullcontext
from typing import AsyncIterator, Iterable
from uuid import UUID

from sqlalchemy import select, text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from tracker.db.locks import namespace_locks
from tracker.db.models import (
    Department,
    EmployeeDepartment,
    Goal,
    LegacyIdentity,
    Task,
    User,
    utcnow,
)
from tracker.errors import DuplicateError, PersistenceError, TrackerError
from tracker.observability.logging import get_logger

logger = get_logger(__name__)


class TrackerRepository:
    """Storage operations over one AsyncSession."""

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    # =========================================================================
    # Unit of work
    # =========================================================================
    @property
    def _is_postgres(self) -> bool:
        bind = self.session.bind
        return bind is not None and bind.dialect.name == "postgresql"

    @asynccontextmanager
    async def atomic(self, namespace: str | None = None) -> AsyncIterator["TrackerRepository"]:
        """
        Run the enclosed block as one transaction, serialized per namespace.

        Any implicit transaction left open by earlier reads on this session
        is closed first so the block starts from a fresh snapshot.
        """
        if self.session.in_transaction():
            await self.session.commit()

        lock = namespace_locks.get(namespace) if namespace else nullcontext()
        async with lock:
            try:
                if namespace and self._is_postgres:
                    await self.session.execute(
                        text("SELECT pg_advisory_xact_lock(hashtext(:namespace))"),
                        {"namespace": namespace},
                    )
                yield self
                await self.session.commit()
            except TrackerError:
                await self.session.rollback()
                raise
            except SQLAlchemyError as exc:
                await self.session.rollback()
                logger.error("transaction_failed", namespace=namespace, exc_info=True)
                raise PersistenceError() from exc
            except BaseException:
                await self.session.rollback()
                raise

    # =========================================================================
    # Users
    # =========================================================================
    async def get_user_by_id(self, user_id: UUID) -> User | None:
        return await self.session.get(User, user_id, populate_existing=True)

    async def get_user_by_email(self, email: str) -> User | None:
        """Fetch a user by (already normalized) email."""
        result = await self.session.execute(select(User).where(User.email == email))
        return result.scalar_one_or_none()

    async def get_users_by_emails(self, emails: Iterable[str]) -> dict[str, User]:
        emails = list(emails)
        if not emails:
            return {}
        result = await self.session.execute(select(User).where(User.email.in_(emails)))
        return {user.email: user for user in result.scalars().all()}

    async def list_users(self) -> list[tuple[User, str | None]]:
        """
        List users with the name of their current department.

        An outer join keeps users that have no department link yet (for
        example accounts auto-provisioned at login).
        """
        result = await self.session.execute(
            select(User, Department.name)
            .outerjoin(EmployeeDepartment, EmployeeDepartment.user_id == User.id)
            .outerjoin(Department, Department.id == EmployeeDepartment.department_id)
            .order_by(User.name, User.email)
        )
        return [(user, department) for user, department in result.all()]

    async def get_department_name(self, user_id: UUID) -> str | None:
        result = await self.session.execute(
            select(Department.name)
            .join(EmployeeDepartment, EmployeeDepartment.department_id == Department.id)
            .where(EmployeeDepartment.user_id == user_id)
        )
        return result.scalar_one_or_none()

    async def create_user(
        self,
        name: str,
        email: str,
        role: str = "employee",
        protected: bool = False,
    ) -> User:
        user = User(name=name, email=email, role=role, protected=protected)
        self.session.add(user)
        await self.session.flush()
        return user

    async def get_or_create_user(self, email: str, name: str) -> tuple[User, bool]:
        """Return (user, created). Email must already be normalized."""
        user = await self.get_user_by_email(email)
        if user is not None:
            return user, False
        return await self.create_user(name=name, email=email), True

    async def update_user_role(self, user: User, role: str) -> User:
        user.role = role
        user.updated_at = utcnow()
        await self.session.flush()
        return user

    async def mark_protected_admin(self, user: User) -> User:
        """Pin a user as the protected administrator. Bypasses the Role Store."""
        user.role = "admin"
        user.protected = True
        user.updated_at = utcnow()
        await self.session.flush()
        return user

    # =========================================================================
    # Departments & employee-department links
    # =========================================================================
    async def get_departments_by_names(self, names: Iterable[str]) -> dict[str, Department]:
        names = list(names)
        if not names:
            return {}
        result = await self.session.execute(select(Department).where(Department.name.in_(names)))
        return {department.name: department for department in result.scalars().all()}

    async def get_or_create_departments(self, names: Iterable[str]) -> dict[str, Department]:
        wanted = set(names)
        departments = await self.get_departments_by_names(wanted)
        for name in sorted(wanted - departments.keys()):
            department = Department(name=name)
            self.session.add(department)
            departments[name] = department
        await self.session.flush()
        return departments

    async def get_links_for_users(self, user_ids: Iterable[UUID]) -> dict[UUID, EmployeeDepartment]:
        user_ids = list(user_ids)
        if not user_ids:
            return {}
        result = await self.session.execute(
            select(EmployeeDepartment).where(EmployeeDepartment.user_id.in_(user_ids))
        )
        return {link.user_id: link for link in result.scalars().all()}

    async def set_user_department(
        self,
        user_id: UUID,
        department_id: UUID,
        existing: EmployeeDepartment | None = None,
    ) -> EmployeeDepartment:
        """Point the user's single department link at `department_id`."""
        if existing is None:
            existing = EmployeeDepartment(user_id=user_id, department_id=department_id)
            self.session.add(existing)
        else:
            existing.department_id = department_id
            existing.updated_at = utcnow()
        await self.session.flush()
        return existing

    # =========================================================================
    # Tasks
    # =========================================================================
    async def list_tasks(self) -> list[Task]:
        result = await self.session.execute(select(Task).order_by(Task.created_at, Task.name_key))
        return list(result.scalars().all())

    async def get_task(self, task_id: UUID) -> Task | None:
        return await self.session.get(Task, task_id, populate_existing=True)

    async def get_task_by_name_key(self, name_key: str) -> Task | None:
        result = await self.session.execute(select(Task).where(Task.name_key == name_key))
        return result.scalar_one_or_none()

    async def get_existing_name_keys(self, name_keys: Iterable[str]) -> set[str]:
        name_keys = list(name_keys)
        if not name_keys:
            return set()
        result = await self.session.execute(select(Task.name_key).where(Task.name_key.in_(name_keys)))
        return set(result.scalars().all())

    async def add_tasks(self, tasks: list[Task]) -> list[Task]:
        self.session.add_all(tasks)
        await self.session.flush()
        return tasks

    async def update_task(self, task: Task, **fields) -> Task:
        for key, value in fields.items():
            setattr(task, key, value)
        task.updated_at = utcnow()
        await self.session.flush()
        return task

    async def delete_task(self, task: Task) -> None:
        await self.session.delete(task)
        await self.session.flush()

    # =========================================================================
    # Legacy identities (migration shim storage)
    # =========================================================================
    async def get_legacy_identity(self, legacy_key: str) -> LegacyIdentity | None:
        return await self.session.get(LegacyIdentity, legacy_key)

    async def register_legacy_identity(
        self, legacy_key: str, legacy_id: str, user_id: UUID
    ) -> LegacyIdentity:
        """
        Insert a legacy key. Re-registering it for the same user is a no-op.

        A key is never moved to another user: two legacy ids that derive the
        same key for different users raise DuplicateError naming both ids.
        """
        entry = await self.get_legacy_identity(legacy_key)
        if entry is None:
            entry = LegacyIdentity(legacy_key=legacy_key, legacy_id=legacy_id, user_id=user_id)
            self.session.add(entry)
            await self.session.flush()
        elif entry.user_id != user_id:
            raise DuplicateError(
                f"Legacy key '{legacy_key}' already belongs to another user",
                duplicates=[entry.legacy_id, legacy_id],
            )
        return entry

    # =========================================================================
    # Goals
    # =========================================================================
    async def list_goals(self) -> list[Goal]:
        result = await self.session.execute(select(Goal).order_by(Goal.department, Goal.kpi))
        return list(result.scalars().all())

    async def upsert_goal(
        self,
        department: str,
        kpi: str,
        target_value: float,
        current_value: float,
    ) -> Goal:
        result = await self.session.execute(
            select(Goal).where(Goal.department == department, Goal.kpi == kpi)
        )
        goal = result.scalar_one_or_none()
        if goal is None:
            goal = Goal(department=department, kpi=kpi)
            self.session.add(goal)
        goal.target_value = target_value
        goal.current_value = current_value
        goal.updated_at = utcnow()
        await self.session.flush()
        return goal
