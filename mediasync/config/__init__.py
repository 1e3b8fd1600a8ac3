"""
Application configuration using Pydantic settings.

Configuration comes from environment variables with sensible defaults.
Supports an in-memory storage mode for local development.
"""

from .settings import Settings, get_settings, parse_targets

__all__ = ["Settings", "get_settings", "parse_targets"]
