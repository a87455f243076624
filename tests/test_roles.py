"""Role Store: defaults, overwrites and the protected-account rule."""

import uuid

import pytest

from tracker.auth.rbac import Role
from tracker.auth.roles import RoleStore
from tracker.errors import NotFoundError, ProtectedAccountError, ValidationError


class TestGetRole:
    async def test_defaults_to_employee_for_unknown_user(self, repo):
        assert await RoleStore(repo).get_role(uuid.uuid4()) is Role.EMPLOYEE

    async def test_defaults_to_employee_for_none(self, repo):
        assert await RoleStore(repo).get_role(None) is Role.EMPLOYEE

    async def test_unrecognised_stored_role(self, repo, make_user):
        user = await make_user("ada@example.com", role="superuser")
        assert await RoleStore(repo).get_role(user.id) is Role.EMPLOYEE

    async def test_stored_role(self, repo, make_user):
        user = await make_user("ada@example.com", role="manager")
        assert await RoleStore(repo).get_role(user.id) is Role.MANAGER


class TestSetRole:
    async def test_overwrites_role(self, repo, make_user):
        user = await make_user("ada@example.com")
        store = RoleStore(repo)

        await store.set_role(user.id, "manager")
        await store.set_role(user.id, Role.ADMIN)

        assert await store.get_role(user.id) is Role.ADMIN

    async def test_protected_user_is_never_changed(self, repo, make_user):
        admin = await make_user("root@example.com", role="admin", protected=True)
        admin_id = admin.id
        store = RoleStore(repo)

        with pytest.raises(ProtectedAccountError):
            await store.set_role(admin_id, "employee")
        assert await store.get_role(admin_id) is Role.ADMIN

    async def test_protected_user_rejects_same_role(self, repo, make_user):
        admin = await make_user("root@example.com", role="admin", protected=True)
        with pytest.raises(ProtectedAccountError):
            await RoleStore(repo).set_role(admin.id, "admin")

    async def test_unknown_user(self, repo):
        with pytest.raises(NotFoundError):
            await RoleStore(repo).set_role(uuid.uuid4(), "manager")

    async def test_unknown_role(self, repo, make_user):
        user = await make_user("ada@example.com")
        with pytest.raises(ValidationError):
            await RoleStore(repo).set_role(user.id, "superuser")


async def test_list_assignments(repo, make_user):
    await make_user("root@example.com", name="Root", role="admin", protected=True)
    await make_user("ada@example.com", name="Ada")

    assignments = {a.email: a for a in await RoleStore(repo).list_assignments()}

    assert assignments["root@example.com"].role is Role.ADMIN
    assert assignments["root@example.com"].protected
    assert assignments["ada@example.com"].role is Role.EMPLOYEE
