"""Application Settings.

Combines the validated RegistryConfig with application metadata.
"""

from typing import Optional

from medregistry import __version__
from medregistry.infrastructure.config_manager import ConfigManager, RegistryConfig

APP_NAME = "MedRegistry"
APP_VERSION = __version__


class Settings:
    """Application settings loaded lazily from the configuration manager.

    Parameters:
        config_manager: Source of configuration; environment when omitted
    """

    def __init__(self, config_manager: Optional[ConfigManager] = None):
        self._config_manager = config_manager
        self._registry_config: Optional[RegistryConfig] = None
        self.app_name = APP_NAME
        self.app_version = APP_VERSION

    @property
    def config_manager(self) -> ConfigManager:
        if self._config_manager is None:
            self._config_manager = ConfigManager.from_environment()
        return self._config_manager

    @property
    def registry_config(self) -> RegistryConfig:
        """Get registry configuration (loaded on first access)."""
        if self._registry_config is None:
            self._registry_config = self.config_manager.get_registry_config()
        return self._registry_config

    def load(self) -> 'Settings':
        """Validate configuration now instead of on first access.

        Raises:
            ValueError: If any configured value is invalid
        """
        self._registry_config = self.config_manager.get_registry_config()
        return self

    @property
    def admin(self) -> str:
        return self.registry_config.admin

    @property
    def log_level(self) -> str:
        return self.registry_config.log_level
