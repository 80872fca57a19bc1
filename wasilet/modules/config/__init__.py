"""
Config Module - Black Box Interface

Purpose: Application configuration management
Interface: get_config(), ConfigModule.get(), ConfigModule.set()
Hidden: Config sources, validation logic, environment parsing

Can be replaced with different config systems (Consul, etcd, a kubelet config file).
"""

import os
import tempfile
from typing import Any, Dict


# Configuration Contract: Required and Optional Keys
# This defines the black box interface - what the config module guarantees to provide

REQUIRED_CONFIG_KEYS = {
    "host": "Webserver bind address",
    "port": "Webserver port",
    "log_level": "Logging level (DEBUG, INFO, WARNING, ERROR)",
    "log_dir": "Directory holding captured module output",
    "status_queue_size": "Capacity of each workload's status channel",
    "status_send_timeout": "Seconds a worker blocks on a full status channel before retrying",
}

OPTIONAL_CONFIG_KEYS = {
    "cert_file": {
        "description": "TLS certificate served by the webserver",
        "default": None,
    },
    "private_key_file": {
        "description": "TLS private key matching cert_file",
        "default": None,
    },
    "static_pod_dir": {
        "description": "Directory of pod manifests started at boot",
        "default": None,
    },
    "debug": {
        "description": "Enable debug mode",
        "default": False,
    },
    "runtime_log_level": {
        "description": "Logging level of the module workers, defaults to log_level",
        "default": None,
    },
}


class ConfigModule:
    """Configuration management module."""

    def __init__(self):
        """Initialize with environment variables."""
        self._config = self._load_from_env()
        self._validate_required_keys()

    def _validate_required_keys(self) -> None:
        """
        Validate that all required configuration keys are present.

        Raises:
            ValueError: If required keys are missing or out of range
        """
        missing_keys = []
        for key in REQUIRED_CONFIG_KEYS:
            if key not in self._config or self._config[key] is None:
                missing_keys.append(key)

        if missing_keys:
            raise ValueError(
                f"Missing required configuration keys: {', '.join(missing_keys)}. "
                f"Check environment variables and deployment configuration."
            )

        if self._config["status_queue_size"] < 1:
            raise ValueError("WASILET_STATUS_QUEUE_SIZE must be at least 1")
        if self._config["status_send_timeout"] <= 0:
            raise ValueError("WASILET_STATUS_SEND_TIMEOUT must be positive")

    def _load_from_env(self) -> Dict[str, Any]:
        """Load configuration from environment."""
        return {
            # Webserver settings
            "host": os.getenv("WASILET_HOST", "0.0.0.0"),
            "port": int(os.getenv("WASILET_PORT", "3000")),
            "cert_file": os.getenv("WASILET_CERT_FILE"),
            "private_key_file": os.getenv("WASILET_PRIVATE_KEY_FILE"),
            "log_level": os.getenv("LOG_LEVEL", "INFO"),
            "runtime_log_level": os.getenv("WASILET_RUNTIME_LOG_LEVEL"),
            "debug": os.getenv("DEBUG", "false").lower() == "true",
            # Runtime settings
            "log_dir": os.getenv("WASILET_LOG_DIR") or tempfile.gettempdir(),
            "status_queue_size": int(os.getenv("WASILET_STATUS_QUEUE_SIZE", "32")),
            "status_send_timeout": float(os.getenv("WASILET_STATUS_SEND_TIMEOUT", "1.0")),
            "static_pod_dir": os.getenv("WASILET_STATIC_POD_DIR"),
        }

    def get(self, key: str, default: Any = None) -> Any:
        """Get configuration value."""
        return self._config.get(key, default)

    def set(self, key: str, value: Any) -> None:
        """Set configuration value."""
        self._config[key] = value

    def get_all(self) -> Dict[str, Any]:
        """Get all configuration values."""
        return self._config.copy()

    @property
    def tls_enabled(self) -> bool:
        """TLS is served only when both certificate and key are configured."""
        return bool(self._config.get("cert_file") and self._config.get("private_key_file"))

    @staticmethod
    def get_config_schema() -> Dict[str, Any]:
        """
        Get the configuration schema (contract) for this module.

        Returns:
            Dictionary with 'required' and 'optional' key specifications

        Example:
            >>> schema = ConfigModule.get_config_schema()
            >>> print(schema['required']['log_dir'])
            'Directory holding captured module output'
        """
        return {
            "required": REQUIRED_CONFIG_KEYS.copy(),
            "optional": OPTIONAL_CONFIG_KEYS.copy(),
        }


# Singleton instance
_instance = None


def get_config() -> ConfigModule:
    """Get the configuration module singleton."""
    global _instance
    if _instance is None:
        _instance = ConfigModule()
    return _instance


__all__ = ["get_config", "ConfigModule"]
