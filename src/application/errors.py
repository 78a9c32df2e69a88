from __future__ import annotations

from typing import Any, Mapping


class AppError(Exception):
    code = "app_error"
    status_code = 400
    retryable = False

    def __init__(self, message: str, *, details: Mapping[str, Any] | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details


class AuthError(AppError):
    code = "auth_error"
    status_code = 401


class NotFound(AppError):
    code = "not_found"
    status_code = 404


class RuleViolation(AppError):
    """A membership change rejected by a tenant invariant. Never retried."""

    code = "rule_violation"
    status_code = 409


class InvalidRoleAssignment(RuleViolation):
    code = "invalid_role_assignment"
    status_code = 422


class OwnerProtected(RuleViolation):
    code = "owner_protected"
    status_code = 403


class LastAdminProtected(RuleViolation):
    code = "last_admin_protected"
    status_code = 409


class StorageError(AppError):
    """The storage layer failed or timed out; the whole operation was rolled back."""

    code = "storage_error"
    status_code = 503
    retryable = True
