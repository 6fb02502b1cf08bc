"""Shared cross-cutting utilities (logging)."""
