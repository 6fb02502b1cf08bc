"""Organization ID format validation.

Shared by the tenant context carrier, the API selector header, and the
verification harness so that malformed org ids are rejected consistently.
Org ids are canonical UUIDs; the nil UUID is never a valid organization.
"""

import re
from uuid import UUID

NIL_ORG_ID = UUID(int=0)

# Canonical 8-4-4-4-12 hex form only; no braces, no urn: prefix, no whitespace.
_ORG_ID_RE = re.compile(
    r"^[0-9a-fA-F]{8}-[0-9a-fA-F]{4}-[0-9a-fA-F]{4}-[0-9a-fA-F]{4}-[0-9a-fA-F]{12}$"
)


def is_valid_org_id_format(value: str) -> bool:
    """Return True if value is a canonical, non-nil UUID string."""
    if not value or not _ORG_ID_RE.fullmatch(value):
        return False
    return UUID(value) != NIL_ORG_ID


def parse_org_id(value: object) -> UUID | None:
    """Return value as a UUID if it is a valid org id, else None.

    Accepts UUID instances and canonical UUID strings. Anything else
    (None, empty, wildcards, malformed text, nil UUID) yields None.
    """
    if isinstance(value, UUID):
        return value if value != NIL_ORG_ID else None
    if isinstance(value, str) and is_valid_org_id_format(value):
        return UUID(value)
    return None
