"""
Configuration Manager for execman

Handles persistent user preferences:
- Default installation directory for new executables
- Whether pre-releases count as "latest"
- GitHub token, request timeout and worker count
- Whether checksum verification is mandatory

Uses ConfigParser and stores the file next to the registry in
``~/.config/execman/config.ini``. Reading never creates the file.
"""

import os
import configparser
from pathlib import Path
from typing import Optional, Dict
import logging

from ..exceptions import ConfigError
from .registry import config_dir, default_bin_dir

SECTION = 'execman'

CONFIG_FILENAME = 'config.ini'


def default_config_path() -> Path:
    override = os.environ.get('EXECMAN_CONFIG')
    if override:
        return Path(override)
    return config_dir() / CONFIG_FILENAME


class ConfigManager:
    """
    Manages execman configuration and persistent user preferences.
    """

    def __init__(self, config_file: Optional[Path] = None):
        """
        Initialize the configuration manager.

        Args:
            config_file: Path of the INI file, defaults to ``default_config_path()``
        """
        self.logger = logging.getLogger(__name__)
        self.config_file = Path(config_file) if config_file else default_config_path()
        self.config = configparser.ConfigParser()

        # Default configuration values
        self.defaults: Dict[str, str] = {
            'install_dir': str(default_bin_dir()),
            'include_prereleases': 'false',
            'github_token': '',
            'request_timeout': '30',
            'max_workers': '4',
            'require_checksums': 'false',
        }

        self.load_config()

    def load_config(self) -> None:
        """
        Load configuration from file, falling back to defaults.

        Raises:
            ConfigError: The file exists but is not valid INI
        """
        self.config.read_dict({SECTION: self.defaults})
        if not self.config_file.exists():
            self.logger.debug(f"No configuration at {self.config_file}, using defaults")
            return

        try:
            self.logger.debug(f"Loading configuration from {self.config_file}")
            with open(self.config_file, 'r', encoding='utf-8') as f:
                self.config.read_file(f)
        except (configparser.Error, OSError) as e:
            raise ConfigError(
                f"Error loading configuration {self.config_file}: {e}",
                {"path": str(self.config_file)},
            ) from e

    def save_config(self) -> None:
        """
        Save current configuration to file with owner-only permissions.

        Raises:
            ConfigError: The file cannot be written
        """
        try:
            self.config_file.parent.mkdir(mode=0o700, parents=True, exist_ok=True)
            fd = os.open(self.config_file, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, 0o600)
            with os.fdopen(fd, 'w', encoding='utf-8') as f:
                self.config.write(f)
        except OSError as e:
            raise ConfigError(
                f"Failed to save configuration: {e}", {"path": str(self.config_file)}
            ) from e
        self.logger.debug(f"Configuration saved to {self.config_file}")

    def get_install_dir(self) -> Path:
        """
        Get the directory new executables are installed into.

        Returns:
            Path: The installation directory, with ``~`` expanded
        """
        return Path(self.config.get(SECTION, 'install_dir')).expanduser()

    def get_include_prereleases(self) -> bool:
        return self._get_boolean('include_prereleases')

    def get_require_checksums(self) -> bool:
        return self._get_boolean('require_checksums')

    def get_github_token(self) -> str:
        """
        Get the GitHub token; the ``GITHUB_TOKEN`` environment variable wins.

        Returns:
            str: The GitHub token, or empty string if not set
        """
        return os.environ.get('GITHUB_TOKEN') or self.config.get(SECTION, 'github_token')

    def get_request_timeout(self) -> float:
        value = self._get_number('request_timeout', float)
        if value <= 0:
            raise ConfigError(f"request_timeout must be positive, got {value}")
        return value

    def get_max_workers(self) -> int:
        value = self._get_number('max_workers', int)
        if value < 1:
            raise ConfigError(f"max_workers must be at least 1, got {value}")
        return value

    def get_config_value(self, key: str) -> str:
        """
        Get a configuration value by key.

        Raises:
            ConfigError: Unknown key
        """
        self._check_key(key)
        return self.config.get(SECTION, key)

    def set_config_value(self, key: str, value: str) -> None:
        """
        Set and persist a configuration value.

        Raises:
            ConfigError: Unknown key or invalid value
        """
        self._check_key(key)
        previous = self.config.get(SECTION, key)
        self.config.set(SECTION, key, value)
        try:
            # Validate through the typed getter before persisting
            getter = {
                'include_prereleases': self.get_include_prereleases,
                'require_checksums': self.get_require_checksums,
                'request_timeout': self.get_request_timeout,
                'max_workers': self.get_max_workers,
            }.get(key)
            if getter is not None:
                getter()
        except ConfigError:
            self.config.set(SECTION, key, previous)
            raise
        self.save_config()
        self.logger.info(f"Configuration {key} updated")

    def items(self) -> Dict[str, str]:
        return {key: self.config.get(SECTION, key) for key in self.defaults}

    def _check_key(self, key: str) -> None:
        if key not in self.defaults:
            raise ConfigError(
                f"Unknown configuration key: {key} (known: {', '.join(sorted(self.defaults))})",
                {"key": key},
            )

    def _get_boolean(self, key: str) -> bool:
        try:
            return self.config.getboolean(SECTION, key)
        except ValueError as e:
            raise ConfigError(f"Invalid boolean for {key}: {e}", {"key": key}) from e

    def _get_number(self, key: str, kind):
        raw = self.config.get(SECTION, key)
        try:
            return kind(raw)
        except ValueError as e:
            raise ConfigError(f"Invalid value for {key}: {raw!r}", {"key": key}) from e
