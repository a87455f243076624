"""
Role-Based Access Control (RBAC): Permission Matrix
=============================================================================
CONCEPT: Levels instead of per-action booleans

Every (role, resource) pair has exactly one permission LEVEL:

    none  < read < write

and every request is classified into an ACTION:

    read                           -> needs at least `read`
    write, delete, bulk_create     -> need `write`

So the decision rule is a single line:

    allow  iff  level == write  OR  (action == read AND level != none)

THE MATRIX:

                 tasks   employees  notifications  roles   goals
    admin        write   write      write          write   write
    manager      read    read       read           none    write
    employee     read    read       none           none    read

The matrix is TOTAL: every cell above is defined. Anything outside it (an
unknown role, resource or action) resolves to `none` and is denied.

`evaluate()` is a pure function with no I/O, so the whole matrix can be
tested exhaustively (tests/test_rbac.py) and the access-control
dependency can call it on every request at no cost.
=============================================================================
"""

from enum import Enum


class Role(str, Enum):
    ADMIN = "admin"
    MANAGER = "manager"
    EMPLOYEE = "employee"


class Resource(str, Enum):
    TASKS = "tasks"
    EMPLOYEES = "employees"
    NOTIFICATIONS = "notifications"
    ROLES = "roles"
    GOALS = "goals"


class Action(str, Enum):
    READ = "read"
    WRITE = "write"
    DELETE = "delete"
    BULK_CREATE = "bulk_create"


class PermissionLevel(str, Enum):
    NONE = "none"
    READ = "read"
    WRITE = "write"


class Decision(str, Enum):
    ALLOW = "allow"
    DENY = "deny"


DEFAULT_ROLE = Role.EMPLOYEE


# =============================================================================
# Permission Matrix
# =============================================================================
# ROLE -> RESOURCE -> LEVEL. Kept in code, not in the database: it changes
# with the application and goes through code review like any other change.
# =============================================================================
PERMISSIONS: dict[Role, dict[Resource, PermissionLevel]] = {
    Role.ADMIN: {
        Resource.TASKS: PermissionLevel.WRITE,
        Resource.EMPLOYEES: PermissionLevel.WRITE,
        Resource.NOTIFICATIONS: PermissionLevel.WRITE,
        Resource.ROLES: PermissionLevel.WRITE,
        Resource.GOALS: PermissionLevel.WRITE,
    },
    Role.MANAGER: {
        Resource.TASKS: PermissionLevel.READ,
        Resource.EMPLOYEES: PermissionLevel.READ,
        Resource.NOTIFICATIONS: PermissionLevel.READ,
        Resource.ROLES: PermissionLevel.NONE,
        Resource.GOALS: PermissionLevel.WRITE,
    },
    Role.EMPLOYEE: {
        Resource.TASKS: PermissionLevel.READ,
        Resource.EMPLOYEES: PermissionLevel.READ,
        Resource.NOTIFICATIONS: PermissionLevel.NONE,
        Resource.ROLES: PermissionLevel.NONE,
        Resource.GOALS: PermissionLevel.READ,
    },
}


def parse_role(value: str | Role | None) -> Role | None:
    """Return the Role for a stored/submitted value, or None if unrecognised."""
    if isinstance(value, Role):
        return value
    if not value:
        return None
    try:
        return Role(value.strip().lower())
    except ValueError:
        return None


def _parse(enum_cls, value):
    if isinstance(value, enum_cls):
        return value
    try:
        return enum_cls(value)
    except ValueError:
        return None


def classify_action(action: str | Action) -> PermissionLevel | None:
    """
    Map an action onto the level it requires.

    Only `read` is a read. Everything else that mutates (write, delete,
    bulk_create) needs `write`. Unknown actions return None.
    """
    action = _parse(Action, action)
    if action is None:
        return None
    if action is Action.READ:
        return PermissionLevel.READ
    return PermissionLevel.WRITE


def permission_level(role: str | Role, resource: str | Resource) -> PermissionLevel:
    """Level held by `role` on `resource`; `none` for anything outside the matrix."""
    role = _parse(Role, role)
    resource = _parse(Resource, resource)
    if role is None or resource is None:
        return PermissionLevel.NONE
    return PERMISSIONS.get(role, {}).get(resource, PermissionLevel.NONE)


def evaluate(role: str | Role, resource: str | Resource, action: str | Action) -> Decision:
    """
    Decide whether `role` may perform `action` on `resource`.

    EXAMPLES:
        evaluate("admin", "roles", "write")        -> ALLOW
        evaluate("manager", "goals", "bulk_create") -> ALLOW
        evaluate("manager", "tasks", "delete")      -> DENY
        evaluate("employee", "employees", "read")   -> ALLOW
        evaluate("employee", "roles", "read")       -> DENY
        evaluate("intern", "tasks", "read")         -> DENY  (unknown role)
    """
    required = classify_action(action)
    if required is None:
        return Decision.DENY

    level = permission_level(role, resource)
    if level is PermissionLevel.WRITE:
        return Decision.ALLOW
    if required is PermissionLevel.READ and level is not PermissionLevel.NONE:
        return Decision.ALLOW
    return Decision.DENY


def is_allowed(role: str | Role, resource: str | Resource, action: str | Action) -> bool:
    return evaluate(role, resource, action) is Decision.ALLOW


def get_role_permissions(role: str | Role) -> dict[str, str]:
    """
    Complete resource -> level map for a role, as plain strings.

    Returned by GET /auth/status so the client can show or hide controls
    from the same matrix the server enforces.
    """
    return {resource.value: permission_level(role, resource).value for resource in Resource}
