"""
Manages loading, validation, and migration of the INI configuration file.
"""

import configparser
import logging
from pathlib import Path
from typing import Any

from pydantic import ValidationError

from manifest_sync.exceptions import ConfigurationError
from manifest_sync.models.config import SyncConfig

log = logging.getLogger(__name__)


class ConfigManager:
    """Handles all operations related to the application's INI config file."""

    def __init__(self, config_file_path: Path):
        self.config_file_path = config_file_path
        self._parser = configparser.ConfigParser(interpolation=None)

    def load_config(self, cli_options: dict[str, Any] | None = None) -> SyncConfig:
        """
        Loads configuration from the INI file, applies CLI overrides, and validates it.

        A missing file is not an error: the defaults apply.

        Args:
            cli_options: A dictionary of options provided via the command line.

        Returns:
            A validated SyncConfig object.

        Raises:
            ConfigurationError: If the config file is unreadable or validation fails.
        """
        config_from_file: dict[str, Any] = {}
        if self.config_file_path.is_file():
            try:
                self._parser.read(self.config_file_path, encoding="utf-8")
            except configparser.Error as e:
                raise ConfigurationError(
                    f"Error parsing configuration file: {e}"
                ) from e

            if self._migrate_if_needed():
                log.info(
                    "[yellow]Configuration file was updated with new default values."
                    "[/yellow]"
                )
            config_from_file = self._get_config_as_dict()
        else:
            log.debug(f"No configuration file at '{self.config_file_path}'.")

        if cli_options:
            config_from_file.update(cli_options)

        try:
            return SyncConfig(
                **config_from_file, config_path=str(self.config_file_path.parent)
            )
        except ValidationError as e:
            raise ConfigurationError(f"Configuration validation failed:\n{e}") from e

    def save_new_config(self, settings: dict[str, Any]) -> None:
        """
        Creates and saves a new configuration file.

        Args:
            settings: A dictionary of settings to save; other keys get defaults.

        Raises:
            ConfigurationError: If the settings are invalid or cannot be written.
        """
        try:
            config = SyncConfig(**settings)
        except ValidationError as e:
            raise ConfigurationError(f"Configuration validation failed:\n{e}") from e

        parser = configparser.ConfigParser(interpolation=None)
        parser["DEFAULT"] = {
            key: self._to_ini(getattr(config, key))
            for key in sorted(SyncConfig.get_ini_keys())
        }

        try:
            self.config_file_path.parent.mkdir(parents=True, exist_ok=True)
            with open(self.config_file_path, "w", encoding="utf-8") as configfile:
                parser.write(configfile)
        except OSError as e:
            raise ConfigurationError(f"Failed to save configuration file: {e}") from e

    @staticmethod
    def _to_ini(value: Any) -> str:
        if isinstance(value, bool):
            return "true" if value else "false"
        return str(value)

    def _get_config_as_dict(self) -> dict[str, Any]:
        """Reads the 'DEFAULT' section of the INI file into a dictionary."""
        section = self._parser["DEFAULT"]
        values: dict[str, Any] = {
            "manifest_url": section.get("manifest_url", ""),
            "output_root": section.get("output_root", ""),
            "user_agent": section.get("user_agent", ""),
            "json_log_dir": section.get("json_log_dir", ""),
        }
        try:
            if "max_workers" in section:
                values["max_workers"] = section.getint("max_workers")
            if "max_attempts" in section:
                values["max_attempts"] = section.getint("max_attempts")
            if "request_timeout" in section:
                values["request_timeout"] = section.getfloat("request_timeout")
            if "drain_timeout" in section:
                values["drain_timeout"] = section.getfloat("drain_timeout")
        except ValueError as e:
            raise ConfigurationError(f"Invalid number in configuration file: {e}") from e
        # Blank strings fall back to the model defaults
        return {
            key: value
            for key, value in values.items()
            if value != "" or key in ("manifest_url", "json_log_dir")
        }

    def _migrate_if_needed(self) -> bool:
        """Adds missing default values to an existing config file."""
        defaults = SyncConfig()
        config_section = self._parser["DEFAULT"]
        needs_saving = False

        for key in sorted(SyncConfig.get_ini_keys()):
            if key not in config_section:
                config_section[key] = self._to_ini(getattr(defaults, key))
                needs_saving = True
                log.debug(
                    f"Migrating config: added missing key '{key}' with "
                    f"value '{config_section[key]}'."
                )

        if needs_saving:
            try:
                with open(self.config_file_path, "w", encoding="utf-8") as f:
                    self._parser.write(f)
            except OSError as e:
                log.error(f"Could not save migrated configuration file: {e}")
                return False

        return needs_saving
