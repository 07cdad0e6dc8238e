"""
Configuration management for the reset tool.

Handles loading and merging configuration from:
- Built-in defaults
- An optional YAML configuration file
- Environment variables
"""

import copy
import os
from typing import Any, Dict, Optional

import yaml

DEFAULT_CONFIG: Dict[str, Any] = {
    "logging": {
        "level": "INFO",
        "format": "console",
    },
    "admin": {
        "timeout_seconds": 60.0,
        "delete_timeout_seconds": 30.0,
    },
    "apps": {
        "root": "/apps/kafka-streams",
    },
    "backend": {
        "name": "memory",
        "memory": {
            "snapshot": None,
        },
    },
    "lifecycle": {
        "max_topic_ready_try": 5,
        "replication_factor": 3,
        "retry_backoff_ms": 100,
        "retry_backoff_max_ms": 5000,
        "window_additional_retention_ms": 86400000,  # 1 day
    },
    "topic": {},
}


class Config:
    """Configuration manager for the reset tool."""

    def __init__(self, config_file: Optional[str] = None):
        """
        Initialize configuration.

        Args:
            config_file: Path to a YAML configuration file. If None, only
                defaults and environment overrides apply.
        """
        self._config: Dict[str, Any] = copy.deepcopy(DEFAULT_CONFIG)

        if config_file:
            self._load_config_file(config_file)

        self._apply_env_overrides()

    def _load_config_file(self, config_file: str) -> None:
        """
        Load configuration from YAML file.

        Args:
            config_file: Path to YAML configuration file
        """
        with open(config_file, "r") as f:
            file_config = yaml.safe_load(f) or {}

        if not isinstance(file_config, dict):
            raise ValueError(
                f"Configuration file {config_file} must contain a mapping"
            )

        self._merge_config(file_config)

    def _merge_config(self, new_config: Dict[str, Any]) -> None:
        """
        Deep merge new configuration into existing configuration.

        Args:
            new_config: Configuration dictionary to merge
        """
        self._config = self._deep_merge(self._config, new_config)

    def _deep_merge(self, base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
        """
        Deep merge two dictionaries.

        Args:
            base: Base dictionary
            override: Override dictionary

        Returns:
            Merged dictionary
        """
        result = base.copy()
        for key, value in override.items():
            if key in result and isinstance(result[key], dict) and isinstance(value, dict):
                result[key] = self._deep_merge(result[key], value)
            else:
                result[key] = value
        return result

    def _apply_env_overrides(self) -> None:
        """Apply environment variable overrides."""
        if log_level := os.getenv("STREAMRESET_LOG_LEVEL"):
            self.set("logging.level", log_level)

        if apps_root := os.getenv("STREAMRESET_APPS_ROOT"):
            self.set("apps.root", apps_root)

        if backend := os.getenv("STREAMRESET_BACKEND"):
            self.set("backend.name", backend)

        if timeout := os.getenv("STREAMRESET_ADMIN_TIMEOUT"):
            self.set("admin.timeout_seconds", float(timeout))

    def get(self, key: str, default: Any = None) -> Any:
        """
        Get configuration value using dot notation.

        Args:
            key: Configuration key in dot notation (e.g., "admin.timeout_seconds")
            default: Default value if key not found

        Returns:
            Configuration value
        """
        keys = key.split(".")
        value = self._config
        for k in keys:
            if isinstance(value, dict) and k in value:
                value = value[k]
            else:
                return default
        return value

    def set(self, key: str, value: Any) -> None:
        """
        Set configuration value using dot notation.

        Args:
            key: Configuration key in dot notation
            value: Value to set
        """
        keys = key.split(".")
        config = self._config
        for k in keys[:-1]:
            if k not in config:
                config[k] = {}
            config = config[k]
        config[keys[-1]] = value

    def topic_defaults(self) -> Dict[str, str]:
        """
        Get the default topic-level configs applied to created topics.

        Returns:
            Topic config name to string value
        """
        topic_config = self.get("topic", {}) or {}
        return {
            str(name): str(value)
            for name, value in topic_config.items()
            if value is not None
        }


# Global configuration instance
_config: Optional[Config] = None


def get_config(config_file: Optional[str] = None) -> Config:
    """
    Get global configuration instance.

    Args:
        config_file: Optional configuration file path

    Returns:
        Configuration instance
    """
    global _config
    if _config is None:
        _config = Config(config_file)
    return _config


def reset_config() -> None:
    """Reset global configuration (mainly for testing)."""
    global _config
    _config = None
