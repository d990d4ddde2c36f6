"""
Configuration management using backend storage.

Provides access to configuration values with defaults and type conversion.
The CONFIG_SCHEMA provides metadata for building a configuration UI.
"""

import logging
import secrets
from typing import Any, Dict, Optional

from .backend import StorageBackend

# Configuration groups define the logical sections in the config UI
CONFIG_GROUPS = {
    "api": {"label": "YouTube API", "order": 1},
    "security": {"label": "Security", "order": 2},
}

# Schema defining metadata for each editable configuration key
CONFIG_SCHEMA = {
    "youtube_api_key": {
        "group": "api",
        "label": "YouTube API Key",
        "description": "Your YouTube Data API v3 key for searching videos. Get one from Google Cloud Console.",
        "control": "password",
    },
    "search_max_results": {
        "group": "api",
        "label": "Search Results",
        "description": "How many videos a search returns.",
        "control": "slider",
        "min": 1,
        "max": 50,
        "step": 1,
    },
    "operator_pin": {
        "group": "security",
        "label": "Operator PIN",
        "description": "PIN code required to view and change these settings.",
        "control": "password",
    },
}

# Keys whose values are never sent back to a client
SECRET_KEYS = {"youtube_api_key", "operator_pin", "session_secret"}


class ConfigManager:
    """Manages configuration stored in the storage backend."""

    DEFAULTS: Dict[str, Optional[str]] = {
        "youtube_api_key": None,
        "search_max_results": "9",
        "operator_pin": None,  # Operator mode stays locked until one is set
        "session_secret": None,  # Generated on first start
    }

    def __init__(self, backend: StorageBackend):
        """
        Initialize ConfigManager.

        Args:
            backend: Storage backend holding the config entries
        """
        self.backend = backend
        self.logger = logging.getLogger(__name__)
        self.backend.initialize_config_defaults(self.DEFAULTS)

        if not self.get("session_secret"):
            self.set("session_secret", secrets.token_hex(32))
            self.logger.info("Generated new session secret")

    def get(self, key: str, default: Any = None) -> Optional[str]:
        """
        Get a configuration value.

        Args:
            key: Configuration key
            default: Default value if not found (uses DEFAULTS if None)

        Returns:
            Configuration value as string, or None if not found
        """
        if default is None:
            default = self.DEFAULTS.get(key)

        entry = self.backend.get_config(key)
        if entry:
            return entry.value if entry.value else default
        return default

    def get_int(self, key: str, default: Optional[int] = None) -> Optional[int]:
        """Get configuration value as integer."""
        value = self.get(key)
        if value is None or value == "":
            return default
        try:
            return int(value)
        except ValueError:
            self.logger.warning("Invalid integer value for %s: %s", key, value)
            return default

    def set(self, key: str, value: Any) -> bool:
        """
        Set a configuration value.

        Args:
            key: Configuration key
            value: Value to set (will be converted to string)

        Returns:
            True if successful
        """
        return self.backend.set_config(key, str(value))

    def get_all(self, include_secrets: bool = False) -> dict:
        """
        Get all configuration values, merged over the defaults.

        Args:
            include_secrets: If False, secret values are masked
        """
        result = dict(self.DEFAULTS)
        result.update({entry.key: entry.value for entry in self.backend.all_config()})
        if not include_secrets:
            for key in SECRET_KEYS:
                if result.get(key):
                    result[key] = "********"
        return result

    def get_full_config(self) -> dict:
        """
        Get complete configuration data for the UI.

        Returns:
            Dictionary with 'values', 'schema', and 'groups' keys.
        """
        return {
            "values": self.get_all(),
            "schema": {key: dict(value) for key, value in CONFIG_SCHEMA.items()},
            "groups": CONFIG_GROUPS.copy(),
        }
