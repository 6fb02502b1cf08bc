"""Tests for JWT creation, verification and claim mapping."""

from datetime import timedelta
from uuid import uuid4

import pytest
from jose import jwt

from tenantguard.core.config import get_settings
from tenantguard.infrastructure.security.jwt import (
    create_access_token,
    membership_claims,
    session_from_token,
    verify_token,
)


def test_roundtrip_claims() -> None:
    """sub and org_ids survive encode/verify."""
    user, org = uuid4(), uuid4()
    payload = verify_token(create_access_token(user, [org]))
    assert payload["sub"] == str(user)
    assert payload["org_ids"] == [str(org)]
    assert "exp" in payload


def test_expired_token_rejected() -> None:
    token = create_access_token(uuid4(), [uuid4()], expires_delta=timedelta(seconds=-5))
    with pytest.raises(ValueError, match="Invalid token"):
        verify_token(token)


def test_wrong_secret_rejected() -> None:
    settings = get_settings()
    token = jwt.encode(
        {"sub": str(uuid4()), "exp": 9999999999}, "another-secret", algorithm=settings.algorithm
    )
    with pytest.raises(ValueError):
        verify_token(token)


def test_missing_sub_rejected() -> None:
    settings = get_settings()
    token = jwt.encode(
        {"exp": 9999999999},
        settings.secret_key.get_secret_value(),
        algorithm=settings.algorithm,
    )
    with pytest.raises(ValueError):
        verify_token(token)


def test_membership_claims_accepts_legacy_org_id() -> None:
    a, b = str(uuid4()), str(uuid4())
    assert membership_claims({"org_ids": [a], "org_id": b}) == [a, b]
    assert membership_claims({"org_id": b}) == [b]
    assert membership_claims({}) == []


def test_membership_claims_must_be_list() -> None:
    with pytest.raises(ValueError):
        membership_claims({"org_ids": "not-a-list"})


def test_session_from_token() -> None:
    """The verified token becomes an AuthenticatedSession carrying the selector."""
    user, a, b = uuid4(), uuid4(), uuid4()
    token = create_access_token(user, [a], extra_claims={"org_id": str(b)})
    session = session_from_token(token, selected_org_id=str(a))
    assert session.user_id == user
    assert session.org_ids == frozenset({a, b})
    assert session.selected_org_id == str(a)
