"""
Domain Error Taxonomy
=============================================================================
CONCEPT: One exception hierarchy, one rendering rule

Every user-visible failure in the tracker is a subclass of TrackerError.
Each subclass fixes two things:
  - kind: a stable machine-readable string the client can switch on
  - status_code: the HTTP status the API layer answers with

The API registers a single exception handler (see tracker/main.py) that
turns any TrackerError into:

    {"error": <kind>, "message": <human readable>, ...details}

  AuthenticationError    -> 401  no session / unreadable session
  PermissionDeniedError  -> 403  role insufficient for (resource, action)
  ProtectedAccountError  -> 403  role change attempted on a protected user
  ValidationError        -> 400  malformed input, offenders enumerated
  DuplicateError         -> 400  name/email collision, duplicates listed
  NotFoundError          -> 404  unknown task/user target
  PersistenceError       -> 500  storage failure, cause logged not returned

Repositories never raise for "not found"; they return None and the caller
decides whether that is an error.
=============================================================================
"""

from typing import Any


class TrackerError(Exception):
    """Base class for all domain errors."""

    kind: str = "tracker_error"
    status_code: int = 500

    def __init__(self, message: str, **details: Any) -> None:
        super().__init__(message)
        self.message = message
        self.details = details

    def to_dict(self) -> dict[str, Any]:
        return {"error": self.kind, "message": self.message, **self.details}


class AuthenticationError(TrackerError):
    kind = "authentication_required"
    status_code = 401


class PermissionDeniedError(TrackerError):
    """
    Raised when the evaluator denies (role, resource, action).

    The body names resource/action/role so the client can explain the
    refusal, and deliberately carries no user ids.
    """

    kind = "permission_denied"
    status_code = 403

    def __init__(self, resource: str, action: str, role: str) -> None:
        super().__init__(
            f"Role '{role}' has insufficient permissions for {resource} {action}",
            resource=resource,
            action=action,
            role=role,
        )


class ProtectedAccountError(TrackerError):
    kind = "protected_account"
    status_code = 403

    def __init__(self, message: str = "The role of a protected account cannot be changed") -> None:
        super().__init__(message)


class ValidationError(TrackerError):
    kind = "validation_error"
    status_code = 400

    def __init__(self, message: str, invalid: list[Any]) -> None:
        super().__init__(message, invalid=invalid)
        self.invalid = invalid


class DuplicateError(TrackerError):
    kind = "duplicate"
    status_code = 400

    def __init__(self, message: str, duplicates: list[str]) -> None:
        super().__init__(message, duplicates=duplicates)
        self.duplicates = duplicates


class NotFoundError(TrackerError):
    kind = "not_found"
    status_code = 404


class PersistenceError(TrackerError):
    kind = "persistence_error"
    status_code = 500

    def __init__(self, message: str = "A storage error occurred") -> None:
        super().__init__(message)
