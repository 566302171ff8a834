"""
Dependency injection services.

Provides cached provider functions for infrastructure singletons.
"""

from infrastructure.services.providers import (
    get_google_workspace_clients,
    get_property_store,
    get_retry_store,
    get_settings,
)

__all__ = [
    "get_google_workspace_clients",
    "get_property_store",
    "get_retry_store",
    "get_settings",
]
