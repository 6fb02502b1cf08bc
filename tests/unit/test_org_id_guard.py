"""Tests for the before_flush org_id guard."""

from types import SimpleNamespace
from uuid import uuid4

import pytest
from sqlalchemy.orm.attributes import set_committed_value

from tenantguard.domain.exceptions import ValidationException
from tenantguard.infrastructure.persistence.database import SESSION_ORG_KEY
from tenantguard.infrastructure.persistence.models import Customer, Org
from tenantguard.infrastructure.persistence.models.mixins import guard_org_id


def _session(new=(), dirty=(), org_id=None) -> SimpleNamespace:
    info = {SESSION_ORG_KEY: org_id} if org_id else {}
    return SimpleNamespace(new=list(new), dirty=list(dirty), info=info)


def test_new_row_gets_bound_org() -> None:
    """A new tenant-scoped row without org_id is stamped with the bound org."""
    org = uuid4()
    customer = Customer(name="Acme")
    guard_org_id(_session(new=[customer], org_id=org), None, None)
    assert customer.org_id == org


def test_new_row_with_same_org_passes() -> None:
    org = uuid4()
    customer = Customer(name="Acme", org_id=org)
    guard_org_id(_session(new=[customer], org_id=org), None, None)
    assert customer.org_id == org


def test_new_row_with_other_org_rejected() -> None:
    with pytest.raises(ValidationException) as exc_info:
        guard_org_id(_session(new=[Customer(name="Acme", org_id=uuid4())], org_id=uuid4()), None, None)
    assert exc_info.value.details == {"field": "org_id"}


def test_unbound_session_leaves_rows_alone() -> None:
    """Without a bound org nothing is stamped; the database rejects a NULL org_id."""
    customer = Customer(name="Acme")
    guard_org_id(_session(new=[customer]), None, None)
    assert customer.org_id is None


def test_non_scoped_rows_ignored() -> None:
    org = Org(name="ORG-A")
    guard_org_id(_session(new=[org], dirty=[org], org_id=uuid4()), None, None)


def test_org_id_change_rejected() -> None:
    """Changing org_id on a loaded row is refused."""
    customer = Customer(name="Acme")
    set_committed_value(customer, "org_id", uuid4())
    customer.org_id = uuid4()
    with pytest.raises(ValidationException):
        guard_org_id(_session(dirty=[customer]), None, None)


def test_other_changes_on_loaded_row_pass() -> None:
    org = uuid4()
    customer = Customer(name="Acme")
    set_committed_value(customer, "org_id", org)
    customer.name = "Acme Pty Ltd"
    guard_org_id(_session(dirty=[customer], org_id=org), None, None)
