"""Tenant context carrier.

A TenantContext binds one unit of work to exactly one organization. It is
built once per request (or job) from a verified AuthenticatedSession by
resolve() and then passed explicitly to every database call: there is no
ambient "current tenant" (no contextvar, thread-local or module global).

Usage:
    session = AuthenticatedSession(user_id=uid, org_ids=(org,))
    ctx = resolve(session)
    async with bound_session(ctx) as db:
        ...
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, field
from uuid import UUID

from tenantguard.core.org_validation import parse_org_id
from tenantguard.domain.exceptions import (
    AmbiguousOrganizationError,
    NoOrganizationError,
    OrganizationNotPermittedError,
    ValidationException,
)


@dataclass(frozen=True, slots=True)
class TenantContext:
    """Immutable (org_id, user_id) pair for one unit of work."""

    org_id: UUID
    user_id: UUID

    def __post_init__(self) -> None:
        if not isinstance(self.org_id, UUID) or parse_org_id(self.org_id) is None:
            raise ValidationException("org_id must be a non-nil UUID", field="org_id")
        if not isinstance(self.user_id, UUID):
            raise ValidationException("user_id must be a UUID", field="user_id")


@dataclass(frozen=True, slots=True)
class AuthenticatedSession:
    """Verified identity handed over by the authentication layer.

    org_ids are the caller's verified organization memberships.
    selected_org_id is the optional explicit selector (raw, unvalidated).
    """

    user_id: UUID
    org_ids: frozenset[UUID] = field(default_factory=frozenset)
    selected_org_id: str | None = None

    @classmethod
    def from_claims(
        cls,
        user_id: str,
        org_ids: Iterable[object],
        selected_org_id: str | None = None,
    ) -> AuthenticatedSession:
        """Build from token claims; malformed membership ids are dropped."""
        try:
            uid = UUID(user_id)
        except (TypeError, ValueError) as e:
            raise ValidationException("user id claim is not a UUID", field="sub") from e
        memberships = frozenset(
            org for org in (parse_org_id(value) for value in org_ids) if org is not None
        )
        return cls(user_id=uid, org_ids=memberships, selected_org_id=selected_org_id)


def resolve(session: AuthenticatedSession) -> TenantContext:
    """Resolve a verified session to exactly one organization.

    - No memberships: NoOrganizationError.
    - Explicit selector: must parse as an org id and be one of the memberships,
      else OrganizationNotPermittedError.
    - No selector and one membership: that organization.
    - No selector and several memberships: AmbiguousOrganizationError.
    """
    user_id = str(session.user_id)
    if not session.org_ids:
        raise NoOrganizationError(user_id)

    if session.selected_org_id is not None:
        selected = parse_org_id(session.selected_org_id.strip())
        if selected is None or selected not in session.org_ids:
            raise OrganizationNotPermittedError(user_id)
        return TenantContext(org_id=selected, user_id=session.user_id)

    if len(session.org_ids) > 1:
        raise AmbiguousOrganizationError(user_id, len(session.org_ids))

    (org_id,) = session.org_ids
    return TenantContext(org_id=org_id, user_id=session.user_id)
