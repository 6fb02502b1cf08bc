"""JWT access tokens carrying verified organization memberships.

Claims: sub (user id), org_ids (list of org UUIDs). A legacy single org_id
claim is accepted as one membership. Uses tenantguard.core.config for the
secret and algorithm.
"""

from collections.abc import Iterable
from datetime import UTC, datetime, timedelta
from typing import Any, cast
from uuid import UUID

from jose import JWTError, jwt

from tenantguard.core.config import get_settings
from tenantguard.domain.tenant_context import AuthenticatedSession


def create_access_token(
    user_id: UUID | str,
    org_ids: Iterable[UUID | str] = (),
    expires_delta: timedelta | None = None,
    extra_claims: dict[str, Any] | None = None,
) -> str:
    """Create a JWT access token for user_id with the given memberships.

    Args:
        user_id: Becomes the sub claim.
        org_ids: Verified organization memberships.
        expires_delta: Optional TTL; else uses settings.access_token_expire_minutes.
        extra_claims: Additional claims (e.g. a legacy org_id).

    Returns:
        Encoded JWT string.
    """
    settings = get_settings()
    to_encode: dict[str, Any] = dict(extra_claims or {})
    to_encode["sub"] = str(user_id)
    to_encode["org_ids"] = [str(org) for org in org_ids]
    if expires_delta is not None:
        expire = datetime.now(UTC) + expires_delta
    else:
        expire = datetime.now(UTC) + timedelta(
            minutes=settings.access_token_expire_minutes
        )
    to_encode["exp"] = expire
    encoded = jwt.encode(
        to_encode,
        settings.secret_key.get_secret_value(),
        algorithm=settings.algorithm,
    )
    return cast(str, encoded)


def verify_token(token: str) -> dict[str, Any]:
    """Verify and decode a JWT. Returns the payload.

    Enforces presence of exp and sub.

    Raises:
        ValueError: If token is invalid, expired, or missing required claims.
    """
    settings = get_settings()
    try:
        payload = jwt.decode(
            token,
            settings.secret_key.get_secret_value(),
            algorithms=[settings.algorithm],
            options={"require_exp": True, "require_sub": True},
        )
    except JWTError as e:
        raise ValueError(f"Invalid token: {e!s}") from e
    if "sub" not in payload:
        raise ValueError("Token missing required claim: sub")
    return payload


def membership_claims(payload: dict[str, Any]) -> list[object]:
    """Org ids from org_ids, plus the legacy org_id claim when present."""
    raw = payload.get("org_ids") or []
    if not isinstance(raw, list):
        raise ValueError("Claim org_ids must be a list")
    memberships = list(raw)
    legacy = payload.get("org_id")
    if legacy:
        memberships.append(legacy)
    return memberships


def session_from_token(token: str, selected_org_id: str | None = None) -> AuthenticatedSession:
    """Verify token and build the AuthenticatedSession it describes.

    Raises:
        ValueError: If the token is invalid.
        ValidationException: If sub is not a UUID.
    """
    payload = verify_token(token)
    return AuthenticatedSession.from_claims(
        str(payload["sub"]), membership_claims(payload), selected_org_id
    )
