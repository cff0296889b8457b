"""
Service providers.

Provides cached provider functions for application-scoped services.
"""

from infrastructure.services.providers import get_settings

__all__ = [
    "get_settings",
]
