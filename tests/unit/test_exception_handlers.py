"""Tests for the domain exception to HTTP status mapping."""

import pytest

from tenantguard.core.exception_handlers import status_for
from tenantguard.domain.exceptions import (
    AmbiguousOrganizationError,
    AuthenticationException,
    AuthError,
    BindingError,
    IsolationViolation,
    NoOrganizationError,
    OrganizationNotPermittedError,
    PolicyGapError,
    ResourceNotFoundException,
    SqlNotConfiguredException,
    TenantGuardException,
    ValidationException,
)


@pytest.mark.parametrize(
    ("exc", "status"),
    [
        (AuthError(), 403),
        (NoOrganizationError(), 403),
        (AmbiguousOrganizationError("u", 2), 403),
        (OrganizationNotPermittedError("u"), 403),
        (AuthError("Forbidden", "CUSTOM_AUTH"), 403),
        (AuthenticationException(), 401),
        (BindingError("timeout"), 503),
        (PolicyGapError("jobs", ["rls_forced"]), 500),
        (IsolationViolation("jobs", "''", 1), 500),
        (ResourceNotFoundException("Customer", "x"), 404),
        (ValidationException("bad"), 400),
        (SqlNotConfiguredException(), 503),
        (TenantGuardException("other"), 400),
    ],
)
def test_status_for(exc: TenantGuardException, status: int) -> None:
    assert status_for(exc) == status
