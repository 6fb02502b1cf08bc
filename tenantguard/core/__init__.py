"""Core: config, org id validation, and application bootstrap."""

from tenantguard.core.config import Settings, get_settings

__all__ = ["Settings", "get_settings"]
