"""Tests for org id format validation."""

from uuid import UUID, uuid4

import pytest

from tenantguard.core.org_validation import NIL_ORG_ID, is_valid_org_id_format, parse_org_id


def test_canonical_uuid_is_valid() -> None:
    """A canonical lowercase or uppercase UUID string is a valid org id."""
    org = uuid4()
    assert is_valid_org_id_format(str(org))
    assert is_valid_org_id_format(str(org).upper())


@pytest.mark.parametrize(
    "value",
    [
        "",
        "%",
        "*",
        "not-a-uuid",
        str(NIL_ORG_ID),
        "{12345678-1234-1234-1234-123456789abc}",
        "urn:uuid:12345678-1234-1234-1234-123456789abc",
        " 12345678-1234-1234-1234-123456789abc",
        "12345678-1234-1234-1234-123456789abc\n",
        "12345678123412341234123456789abc",
        "' OR '1'='1",
    ],
)
def test_rejected_formats(value: str) -> None:
    """Wildcards, nil, braces, urn prefix, whitespace and unhyphenated forms are rejected."""
    assert not is_valid_org_id_format(value)
    assert parse_org_id(value) is None


def test_parse_org_id_accepts_uuid_instance() -> None:
    """parse_org_id returns UUID instances unchanged, except the nil UUID."""
    org = uuid4()
    assert parse_org_id(org) == org
    assert parse_org_id(NIL_ORG_ID) is None


def test_parse_org_id_from_string() -> None:
    """parse_org_id converts a canonical string to UUID."""
    assert parse_org_id("12345678-1234-1234-1234-123456789abc") == UUID(
        "12345678-1234-1234-1234-123456789abc"
    )


@pytest.mark.parametrize("value", [None, 42, b"12345678-1234-1234-1234-123456789abc", ["x"]])
def test_parse_org_id_non_string(value: object) -> None:
    """Non-string, non-UUID values yield None."""
    assert parse_org_id(value) is None
