"""Permission matrix: every cell, the decision rule and the edge cases."""

import pytest

from tracker.auth.rbac import (
    PERMISSIONS,
    Action,
    Decision,
    PermissionLevel,
    Resource,
    Role,
    classify_action,
    evaluate,
    get_role_permissions,
    is_allowed,
    permission_level,
)

EXPECTED_LEVELS = {
    ("admin", "tasks"): "write",
    ("admin", "employees"): "write",
    ("admin", "notifications"): "write",
    ("admin", "roles"): "write",
    ("admin", "goals"): "write",
    ("manager", "tasks"): "read",
    ("manager", "employees"): "read",
    ("manager", "notifications"): "read",
    ("manager", "roles"): "none",
    ("manager", "goals"): "write",
    ("employee", "tasks"): "read",
    ("employee", "employees"): "read",
    ("employee", "notifications"): "none",
    ("employee", "roles"): "none",
    ("employee", "goals"): "read",
}


class TestMatrix:
    def test_matrix_is_total(self):
        for role in Role:
            assert set(PERMISSIONS[role]) == set(Resource)

    @pytest.mark.parametrize(("role", "resource"), list(EXPECTED_LEVELS))
    def test_levels(self, role, resource):
        assert permission_level(role, resource).value == EXPECTED_LEVELS[(role, resource)]

    @pytest.mark.parametrize("role", list(Role))
    @pytest.mark.parametrize("resource", list(Resource))
    def test_write_implies_read(self, role, resource):
        if evaluate(role, resource, Action.WRITE) is Decision.ALLOW:
            assert evaluate(role, resource, Action.READ) is Decision.ALLOW

    @pytest.mark.parametrize("role", list(Role))
    @pytest.mark.parametrize("resource", list(Resource))
    @pytest.mark.parametrize("action", list(Action))
    def test_decision_rule(self, role, resource, action):
        level = permission_level(role, resource)
        expected = level is PermissionLevel.WRITE or (
            action is Action.READ and level is not PermissionLevel.NONE
        )
        assert is_allowed(role, resource, action) is expected


class TestDecisions:
    def test_admin_can_write_roles(self):
        assert evaluate("admin", "roles", "write") is Decision.ALLOW

    def test_manager_bulk_creates_goals(self):
        assert evaluate("manager", "goals", "bulk_create") is Decision.ALLOW

    def test_manager_cannot_delete_tasks(self):
        assert evaluate("manager", "tasks", "delete") is Decision.DENY

    def test_employee_reads_employees(self):
        assert evaluate("employee", "employees", "read") is Decision.ALLOW

    def test_employee_cannot_read_roles(self):
        assert evaluate("employee", "roles", "read") is Decision.DENY

    def test_employee_cannot_send_notifications(self):
        assert evaluate(Role.EMPLOYEE, Resource.NOTIFICATIONS, Action.WRITE) is Decision.DENY


class TestUnknownInputs:
    def test_unknown_role_is_denied(self):
        assert evaluate("intern", "tasks", "read") is Decision.DENY

    def test_unknown_resource_is_denied(self):
        assert evaluate("admin", "payroll", "read") is Decision.DENY

    def test_unknown_action_is_denied(self):
        assert evaluate("admin", "tasks", "approve") is Decision.DENY

    def test_unknown_role_has_level_none(self):
        assert permission_level("intern", "tasks") is PermissionLevel.NONE


class TestHelpers:
    @pytest.mark.parametrize("action", ["write", "delete", "bulk_create"])
    def test_mutations_need_write(self, action):
        assert classify_action(action) is PermissionLevel.WRITE

    def test_read_needs_read(self):
        assert classify_action("read") is PermissionLevel.READ

    def test_role_permissions_map(self):
        assert get_role_permissions("manager") == {
            "tasks": "read",
            "employees": "read",
            "notifications": "read",
            "roles": "none",
            "goals": "write",
        }
