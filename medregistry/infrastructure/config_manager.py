"""Configuration Manager for the registry runtime.

This module loads the settings a registry process needs at start-up: the
initial administrator principal, where audit events are delivered, and how
logging is formatted. Configuration can come from environment variables
(optionally seeded from a ``.env`` file) or from a JSON file.

Security Impact:
    - The administrator principal is validated before the registry starts
    - Configuration is validated before use (fail-fast)

Architecture:
    - Follows Hexagonal Architecture: Infrastructure layer isolated from domain
    - Type-safe configuration using Pydantic models
"""

import json
import logging
import os
from pathlib import Path
from typing import Any, Dict, Optional

from dotenv import load_dotenv
from pydantic import BaseModel, Field, field_validator

logger = logging.getLogger(__name__)

DEFAULT_ADMIN = "admin"
VALID_LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


def _env_flag(name: str, default: str) -> bool:
    return os.getenv(name, default).strip().lower() in ("1", "true", "yes", "on")


class RegistryConfig(BaseModel):
    """Runtime configuration for a registry process.

    Parameters:
        admin: Initial administrator principal
        audit_file: JSON-lines file receiving audit events (None disables it)
        audit_dispatch_enabled: Deliver audit events to sinks in the background
        log_level: Logging level name
        log_json: Emit structured JSON logs instead of human-readable lines
    """

    admin: str = Field(default=DEFAULT_ADMIN, description="Initial administrator principal")
    audit_file: Optional[str] = Field(None, description="JSON-lines audit output path")
    audit_dispatch_enabled: bool = Field(default=True, description="Background audit delivery")
    log_level: str = Field(default="INFO", description="Logging level")
    log_json: bool = Field(default=False, description="Structured JSON logging")

    @field_validator("admin")
    @classmethod
    def validate_admin(cls, v: str) -> str:
        """Reject a blank administrator principal."""
        if not v or not v.strip():
            raise ValueError("admin principal must be non-empty")
        return v.strip()

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Normalize and validate the logging level name."""
        level = v.strip().upper()
        if level not in VALID_LOG_LEVELS:
            raise ValueError(f"Unsupported log level: {v}. Supported: {list(VALID_LOG_LEVELS)}")
        return level

    @field_validator("audit_file")
    @classmethod
    def validate_audit_file(cls, v: Optional[str]) -> Optional[str]:
        """Treat an empty path as disabled."""
        if v is None or not v.strip():
            return None
        return str(Path(v))


class ConfigManager:
    """Loads RegistryConfig from environment variables or a JSON file.

    Example Usage:
        ```python
        config = ConfigManager.from_environment()
        registry_config = config.get_registry_config()

        config = ConfigManager.from_file("registry.json")
        registry_config = config.get_registry_config()
        ```
    """

    def __init__(self, config_data: Dict[str, Any]):
        self._config_data = config_data
        self._registry_config: Optional[RegistryConfig] = None

    @classmethod
    def from_environment(cls, env_file: Optional[str] = None) -> 'ConfigManager':
        """Load configuration from environment variables.

        Environment Variables:
            - MR_ADMIN: Initial administrator principal
            - MR_AUDIT_FILE: JSON-lines audit output path
            - MR_AUDIT_DISPATCH: Enable background audit delivery (true/false)
            - MR_LOG_LEVEL: Logging level
            - MR_LOG_JSON: Structured JSON logging (true/false)

        Parameters:
            env_file: Optional .env file; defaults to ``.env`` in the working
                directory when it exists. Existing variables are not overridden.
        """
        env_path = Path(env_file) if env_file else Path.cwd() / ".env"
        if env_path.exists():
            load_dotenv(env_path, override=False)
            logger.debug(f"Loaded environment variables from {env_path}")

        config_data = {
            "registry": {
                "admin": os.getenv("MR_ADMIN", DEFAULT_ADMIN),
                "audit_file": os.getenv("MR_AUDIT_FILE"),
                "audit_dispatch_enabled": _env_flag("MR_AUDIT_DISPATCH", "true"),
                "log_level": os.getenv("MR_LOG_LEVEL", "INFO"),
                "log_json": _env_flag("MR_LOG_JSON", "false"),
            }
        }
        return cls(config_data)

    @classmethod
    def from_file(cls, config_path: str) -> 'ConfigManager':
        """Load configuration from a JSON file with a ``registry`` section.

        Raises:
            FileNotFoundError: If the file does not exist
            ValueError: If the file is not valid JSON or not a JSON object
        """
        config_file = Path(config_path)
        if not config_file.exists():
            raise FileNotFoundError(f"Configuration file not found: {config_path}")

        try:
            with open(config_file, 'r', encoding="utf-8") as f:
                config_data = json.load(f)
        except json.JSONDecodeError as e:
            raise ValueError(f"Invalid JSON in configuration file: {str(e)}")

        if not isinstance(config_data, dict):
            raise ValueError("Configuration file must contain a JSON object")
        return cls(config_data)

    def get_registry_config(self) -> RegistryConfig:
        """Validate and return the registry configuration.

        Raises:
            ValueError: If the ``registry`` section is not an object or holds
                invalid values
        """
        if self._registry_config is None:
            section = self._config_data.get("registry", {})
            if not isinstance(section, dict):
                raise ValueError("The 'registry' configuration section must be an object")
            registry_data = {key: value for key, value in section.items() if value is not None}
            self._registry_config = RegistryConfig(**registry_data)
        return self._registry_config

    def get(self, key: str, default: Any = None) -> Any:
        """Get configuration value by key (dot notation, e.g. "registry.admin")."""
        value = self._config_data
        for k in key.split("."):
            if isinstance(value, dict):
                value = value.get(k)
            else:
                return default
        return value if value is not None else default


def get_registry_config() -> RegistryConfig:
    """Convenience function to get registry configuration from environment."""
    return ConfigManager.from_environment().get_registry_config()
