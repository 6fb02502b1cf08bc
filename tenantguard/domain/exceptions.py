"""Domain exceptions for the tenant isolation core.

Defines the error taxonomy of the isolation core. These exceptions are
independent of infrastructure concerns. The presentation layer maps them
to HTTP responses in exception handlers.

Propagation rules:
- AuthError: the caller could not be bound to exactly one organization.
  Recoverable by re-authentication; surfaced as 403.
- BindingError: the session-state write failed. Fatal to the unit of work;
  never downgraded to an empty result.
- PolicyGapError: a tenant-scoped table lacks an active row policy.
  Release-blocking defect.
- IsolationViolation: rows were visible under an adversarial binding.
  Critical security incident.
"""

from typing import Any


class TenantGuardException(Exception):
    """Base exception for all tenantguard errors.

    Attributes:
        message: Human-readable error description.
        error_code: Machine-readable error code.
        details: Additional error context (e.g. table, org_id).
    """

    def __init__(
        self,
        message: str,
        error_code: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        self.message = message
        self.error_code = error_code or self.__class__.__name__
        self.details = details or {}
        super().__init__(self.message)

    def to_dict(self) -> dict[str, Any]:
        """Return a JSON-serializable error body."""
        return {
            "error": self.error_code,
            "message": self.message,
            "details": self.details,
        }


class ValidationException(TenantGuardException):
    """Raised when input validation fails (e.g. invalid format or range)."""

    def __init__(self, message: str, field: str | None = None) -> None:
        details = {"field": field} if field else {}
        super().__init__(message, "VALIDATION_ERROR", details)


class AuthenticationException(TenantGuardException):
    """Raised when authentication fails (e.g. missing or invalid token)."""

    def __init__(self, message: str = "Authentication failed") -> None:
        super().__init__(message, "AUTHENTICATION_ERROR")


class AuthError(TenantGuardException):
    """Raised when an authenticated caller cannot be bound to one organization."""

    def __init__(
        self,
        message: str = "Forbidden",
        error_code: str = "AUTH_ERROR",
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message, error_code, details)


class NoOrganizationError(AuthError):
    """The session carries no resolvable organization."""

    def __init__(self, user_id: str | None = None) -> None:
        super().__init__(
            "No organization is associated with this session",
            "NO_ORGANIZATION",
            {"user_id": user_id} if user_id else {},
        )


class AmbiguousOrganizationError(AuthError):
    """The caller belongs to several organizations and selected none."""

    def __init__(self, user_id: str, membership_count: int) -> None:
        super().__init__(
            "Caller belongs to multiple organizations; an explicit organization selection is required",
            "AMBIGUOUS_ORGANIZATION",
            {"user_id": user_id, "membership_count": membership_count},
        )


class OrganizationNotPermittedError(AuthError):
    """The selected organization is not one the caller is a verified member of."""

    def __init__(self, user_id: str) -> None:
        # Selected org id is never echoed back.
        super().__init__(
            "Caller is not a member of the selected organization",
            "ORGANIZATION_NOT_PERMITTED",
            {"user_id": user_id},
        )


class BindingError(TenantGuardException):
    """Raised when the organization could not be bound to the database session."""

    def __init__(self, reason: str, org_id: str | None = None) -> None:
        details: dict[str, Any] = {"reason": reason}
        if org_id:
            details["org_id"] = org_id
        super().__init__(
            f"Failed to bind organization to database session: {reason}",
            "BINDING_ERROR",
            details,
        )


class PolicyGapError(TenantGuardException):
    """Raised when a tenant-scoped table has no active row policy."""

    def __init__(self, table: str, missing: list[str]) -> None:
        super().__init__(
            f"Row policy gap on table {table}: {', '.join(missing)}",
            "POLICY_GAP",
            {"table": table, "missing": missing},
        )


class IsolationViolation(TenantGuardException):
    """Raised when rows are visible under a binding that must see none."""

    def __init__(self, table: str, binding: str, visible_rows: int) -> None:
        super().__init__(
            f"Isolation violation on {table}: {visible_rows} row(s) visible under binding {binding}",
            "ISOLATION_VIOLATION",
            {"table": table, "binding": binding, "visible_rows": visible_rows},
        )


class ResourceNotFoundException(TenantGuardException):
    """Raised when a resource is missing or belongs to another organization."""

    def __init__(self, resource_type: str, resource_id: str) -> None:
        super().__init__(
            f"{resource_type} not found: {resource_id}",
            "RESOURCE_NOT_FOUND",
            {"resource_type": resource_type, "resource_id": resource_id},
        )


class SqlNotConfiguredException(TenantGuardException):
    """Raised when an operation requires Postgres but no database is configured."""

    def __init__(self) -> None:
        super().__init__(
            message="This operation requires a SQL database that is not configured.",
            error_code="SERVICE_UNAVAILABLE",
        )
