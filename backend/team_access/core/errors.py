"""
Error taxonomy for team access decisions.

DomainError subclasses are recoverable, user-facing conditions carrying an
error code and the HTTP status the adapter maps them to. UnknownRoleError and
UnknownPermissionError signal data-model drift; they subclass ValueError
and never map to a client-facing status.
"""

from __future__ import annotations

from typing import Any, Dict, Optional


class DomainError(Exception):
    """Base error with code, status code and structured details."""

    code = "DOMAIN_ERROR"
    status_code = 400

    def __init__(
        self,
        message: str,
        *,
        code: Optional[str] = None,
        status_code: Optional[int] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        self.message = message
        if code is not None:
            self.code = code
        if status_code is not None:
            self.status_code = status_code
        self.details = details or {}
        super().__init__(message)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "code": self.code,
            "message": self.message,
            "details": self.details,
        }


class NotFoundError(DomainError):
    code = "NOT_FOUND"
    status_code = 404

    def __init__(self, resource: str, resource_id: str):
        super().__init__(
            f"{resource} with id {resource_id} not found",
            details={"resource": resource, "id": resource_id},
        )


class UnauthorizedError(DomainError):
    """Who may act: organizer-scope mismatch or collaboration disabled."""

    code = "UNAUTHORIZED"
    status_code = 401

    def __init__(self, message: str = "Unauthorized access", details: Optional[Dict[str, Any]] = None):
        super().__init__(message, details=details)


class PermissionDeniedError(DomainError):
    """What the acting member may do: permission + regional gate failed."""

    code = "PERMISSION_DENIED"
    status_code = 403

    def __init__(self, message: str = "Permission denied", details: Optional[Dict[str, Any]] = None):
        super().__init__(message, details=details)


class ValidationError(DomainError):
    code = "VALIDATION_ERROR"
    status_code = 400

    def __init__(
        self,
        message: str = "Validation failed",
        details: Optional[Dict[str, Any]] = None,
        *,
        code: Optional[str] = None,
    ):
        super().__init__(message, code=code, details=details)


class ConflictError(DomainError):
    code = "CONFLICT"
    status_code = 409

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message, details=details)


class InvitationExpiredError(DomainError):
    code = "INVITATION_EXPIRED"
    status_code = 410

    def __init__(self, invitation_id: str, expires_at: Any):
        super().__init__(
            "Invitation expired",
            details={"invitation_id": invitation_id, "expires_at": str(expires_at)},
        )


class InvitationStateError(DomainError):
    code = "INVITATION_NOT_PENDING"
    status_code = 409

    def __init__(self, invitation_id: str, status: str):
        super().__init__(
            f"Invitation is {status}",
            details={"invitation_id": invitation_id, "status": status},
        )


class UnknownRoleError(ValueError):
    def __init__(self, role: Any):
        self.role = role
        super().__init__(f"Unknown team role: {role!r}")


class UnknownPermissionError(ValueError):
    def __init__(self, permission: Any):
        self.permission = permission
        super().__init__(f"Unknown team permission: {permission!r}")
