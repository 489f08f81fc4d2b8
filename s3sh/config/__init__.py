"""
Application configuration using Pydantic settings.

Configuration comes from environment variables with sensible defaults.
Command-line flags override anything set here.
"""

from .settings import Settings, get_settings

__all__ = ["Settings", "get_settings"]
