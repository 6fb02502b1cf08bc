"""Tests for TenantContext and organization resolution."""

import dataclasses
from uuid import UUID, uuid4

import pytest

from tenantguard.core.org_validation import NIL_ORG_ID
from tenantguard.domain.exceptions import (
    AmbiguousOrganizationError,
    AuthError,
    NoOrganizationError,
    OrganizationNotPermittedError,
    ValidationException,
)
from tenantguard.domain.tenant_context import AuthenticatedSession, TenantContext, resolve


def test_context_is_immutable() -> None:
    """TenantContext fields cannot be reassigned."""
    ctx = TenantContext(org_id=uuid4(), user_id=uuid4())
    with pytest.raises(dataclasses.FrozenInstanceError):
        ctx.org_id = uuid4()  # type: ignore[misc]


def test_context_rejects_nil_org() -> None:
    """The nil UUID is never a valid organization."""
    with pytest.raises(ValidationException) as exc_info:
        TenantContext(org_id=NIL_ORG_ID, user_id=uuid4())
    assert exc_info.value.details == {"field": "org_id"}


@pytest.mark.parametrize("org_id", ["12345678-1234-1234-1234-123456789abc", None, ""])
def test_context_rejects_non_uuid_org(org_id: object) -> None:
    """org_id must already be a UUID; strings are not coerced."""
    with pytest.raises(ValidationException):
        TenantContext(org_id=org_id, user_id=uuid4())  # type: ignore[arg-type]


def test_context_rejects_non_uuid_user() -> None:
    with pytest.raises(ValidationException):
        TenantContext(org_id=uuid4(), user_id="someone")  # type: ignore[arg-type]


def test_resolve_single_membership() -> None:
    """One membership and no selector resolves to that organization."""
    user, org = uuid4(), uuid4()
    ctx = resolve(AuthenticatedSession(user_id=user, org_ids=frozenset({org})))
    assert ctx == TenantContext(org_id=org, user_id=user)


def test_resolve_no_membership() -> None:
    """No memberships raises NoOrganizationError (an AuthError)."""
    with pytest.raises(NoOrganizationError) as exc_info:
        resolve(AuthenticatedSession(user_id=uuid4()))
    assert isinstance(exc_info.value, AuthError)
    assert exc_info.value.error_code == "NO_ORGANIZATION"


def test_resolve_ambiguous_without_selector() -> None:
    """Several memberships and no selector is ambiguous; no org is picked."""
    session = AuthenticatedSession(user_id=uuid4(), org_ids=frozenset({uuid4(), uuid4()}))
    with pytest.raises(AmbiguousOrganizationError) as exc_info:
        resolve(session)
    assert exc_info.value.details["membership_count"] == 2


def test_resolve_selector_among_memberships() -> None:
    """An explicit selector picks one of several memberships."""
    a, b = uuid4(), uuid4()
    session = AuthenticatedSession(
        user_id=uuid4(), org_ids=frozenset({a, b}), selected_org_id=f" {b} "
    )
    assert resolve(session).org_id == b


def test_resolve_selector_not_a_member() -> None:
    """A selector naming a foreign org is refused and not echoed back."""
    foreign = uuid4()
    session = AuthenticatedSession(
        user_id=uuid4(), org_ids=frozenset({uuid4()}), selected_org_id=str(foreign)
    )
    with pytest.raises(OrganizationNotPermittedError) as exc_info:
        resolve(session)
    assert str(foreign) not in exc_info.value.message
    assert str(foreign) not in str(exc_info.value.details)


@pytest.mark.parametrize("selector", ["", "%", "*", "not-a-uuid", str(NIL_ORG_ID)])
def test_resolve_malformed_selector(selector: str) -> None:
    """Malformed selectors never fall back to the only membership."""
    session = AuthenticatedSession(
        user_id=uuid4(), org_ids=frozenset({uuid4()}), selected_org_id=selector
    )
    with pytest.raises(OrganizationNotPermittedError):
        resolve(session)


def test_from_claims_drops_malformed_memberships() -> None:
    """Membership claims that are not valid org ids are ignored."""
    org = uuid4()
    session = AuthenticatedSession.from_claims(
        str(uuid4()), [str(org), "", "*", None, str(NIL_ORG_ID), 7]
    )
    assert session.org_ids == frozenset({org})


def test_from_claims_rejects_bad_user_id() -> None:
    with pytest.raises(ValidationException) as exc_info:
        AuthenticatedSession.from_claims("not-a-user", [])
    assert exc_info.value.details == {"field": "sub"}


def test_from_claims_keeps_selector() -> None:
    user = uuid4()
    session = AuthenticatedSession.from_claims(str(user), [], selected_org_id="x")
    assert session.user_id == UUID(str(user))
    assert session.selected_org_id == "x"
