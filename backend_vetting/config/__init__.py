"""
Configuration management for Backend Vetting.

Loads and validates settings from environment variables and an optional
.env file. Exposes a single source of truth for all service configuration.
"""

from backend_vetting.config.settings import (  # noqa: F401
    ProviderConfig,
    VettingSettings,
    get_settings,
    load_settings,
)

__all__ = ["ProviderConfig", "VettingSettings", "get_settings", "load_settings"]
