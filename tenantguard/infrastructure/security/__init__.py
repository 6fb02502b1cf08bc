"""Security: JWT verification and claim mapping."""

from tenantguard.infrastructure.security.jwt import (
    create_access_token,
    session_from_token,
    verify_token,
)

__all__ = [
    "create_access_token",
    "session_from_token",
    "verify_token",
]
