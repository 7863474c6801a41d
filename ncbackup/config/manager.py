"""Configuration management for ncbackup."""

import os
import tempfile
from dataclasses import dataclass, field
from typing import Any, Dict, Mapping, Optional, Tuple

import yaml
from dotenv import dotenv_values

from ncbackup.utils.errors import ConfigurationError, create_error_suggestions, format_validation_errors

from .validator import ConfigValidator

DEFAULT_ENV_FILE = ".env"
DEFAULT_LOG_FILE = "/var/log/nextcloud_backup.log"
DEFAULT_REQUIRED_COMMANDS = ("ssh", "rsync", "tar")


@dataclass(frozen=True)
class BackupConfig:
    """Immutable settings for one backup run."""

    remote_host: str
    remote_user: str
    ssh_key: str
    db_password: str = field(repr=False)
    remote_port: int = 22
    remote_backup_dir: str = ""
    retention_days: int = 7
    log_file: str = DEFAULT_LOG_FILE
    staging_root: str = field(default_factory=tempfile.gettempdir)
    db_container: str = "nextcloud_db"
    db_name: str = "nextcloud-db"
    db_user: str = "nextcloud"
    app_container: str = "nextcloud_app"
    app_user: str = "www-data"
    app_volume: str = "nextcloud"
    data_dir: str = "/mnt/nextcloud-data"
    helper_image: str = "alpine:latest"
    required_commands: Tuple[str, ...] = DEFAULT_REQUIRED_COMMANDS

    def __post_init__(self):
        if not self.remote_backup_dir:
            object.__setattr__(self, "remote_backup_dir", f"/home/{self.remote_user}/backup/nextcloud")

    @property
    def ssh_target(self) -> str:
        return f"{self.remote_user}@{self.remote_host}"


# Environment variable -> flat settings key
ENV_MAPPING = {
    "REMOTE_HOST": "remote_host",
    "REMOTE_PORT": "remote_port",
    "REMOTE_USER": "remote_user",
    "SSH_KEY": "ssh_key",
    "DB_PASS": "db_password",
    "RETENTION_DAYS": "retention_days",
    "REMOTE_BACKUP_DIR": "remote_backup_dir",
    "NCBACKUP_LOG_FILE": "log_file",
    "NCBACKUP_STAGING_ROOT": "staging_root",
}

# YAML section.key -> flat settings key
FILE_MAPPING = {
    ("remote", "host"): "remote_host",
    ("remote", "port"): "remote_port",
    ("remote", "user"): "remote_user",
    ("remote", "ssh_key"): "ssh_key",
    ("remote", "backup_dir"): "remote_backup_dir",
    ("database", "container"): "db_container",
    ("database", "name"): "db_name",
    ("database", "user"): "db_user",
    ("nextcloud", "container"): "app_container",
    ("nextcloud", "user"): "app_user",
    ("nextcloud", "volume"): "app_volume",
    ("nextcloud", "data_dir"): "data_dir",
}

INTEGER_KEYS = ("remote_port", "retention_days")


class ConfigManager:
    """Builds a BackupConfig from defaults, a YAML file, a dotenv file and the environment."""

    def __init__(
        self,
        config_path: Optional[str] = None,
        env_file: Optional[str] = None,
        environ: Optional[Mapping[str, str]] = None,
    ):
        """
        Initialize configuration manager.

        Args:
            config_path: Optional YAML configuration file
            env_file: Optional dotenv file (defaults to ``.env`` if present)
            environ: Environment mapping (defaults to ``os.environ``)
        """
        self.config_path = config_path
        self.env_file = env_file
        self.environ = os.environ if environ is None else environ
        self.validator = ConfigValidator()

    def load(self) -> BackupConfig:
        """
        Resolve and validate the configuration.

        Returns:
            BackupConfig: Immutable run configuration

        Raises:
            ConfigurationError: If any source is unreadable or settings are invalid
        """
        settings: Dict[str, Any] = {}
        settings.update(self._load_file_settings())
        settings.update(self._load_env_settings())

        for key in INTEGER_KEYS:
            if key in settings:
                settings[key] = self._parse_int(settings[key])

        if "remote_port" not in settings:
            settings["remote_port"] = 22
        if "retention_days" not in settings:
            settings["retention_days"] = 7

        errors = self.validator.validate_settings(settings)
        if errors:
            raise ConfigurationError(
                "Invalid backup configuration",
                details=format_validation_errors(errors),
                suggestions=create_error_suggestions("configuration_invalid"),
            )

        if "required_commands" in settings:
            settings["required_commands"] = tuple(settings["required_commands"])

        return BackupConfig(**settings)

    def _load_file_settings(self) -> Dict[str, Any]:
        """Read the optional YAML file into flat settings."""
        if not self.config_path:
            return {}

        try:
            with open(self.config_path, encoding="utf-8") as f:
                data = yaml.safe_load(f) or {}
        except FileNotFoundError as e:
            raise ConfigurationError(f"Configuration file not found: {self.config_path}") from e
        except yaml.YAMLError as e:
            raise ConfigurationError(f"Invalid YAML in {self.config_path}", details=str(e)) from e

        errors = self.validator.validate_file_config(data)
        if errors:
            raise ConfigurationError(
                f"Invalid configuration file {self.config_path}",
                details=format_validation_errors(errors),
                suggestions=create_error_suggestions("configuration_invalid"),
            )

        settings = {}
        for (section, key), target in FILE_MAPPING.items():
            value = data.get(section, {}).get(key)
            if value is not None:
                settings[target] = value

        for key in ("helper_image", "retention_days", "log_file", "staging_root", "required_commands"):
            if data.get(key) is not None:
                settings[key] = data[key]

        return settings

    def _load_env_settings(self) -> Dict[str, Any]:
        """Collect settings from the dotenv file and the process environment."""
        values: Dict[str, Optional[str]] = {}

        env_file = self.env_file
        if env_file is None and os.path.isfile(DEFAULT_ENV_FILE):
            env_file = DEFAULT_ENV_FILE

        if env_file:
            if not os.path.isfile(env_file):
                raise ConfigurationError(f"Environment file not found: {env_file}")
            values.update(dotenv_values(env_file))

        # Variables already set in the process win over the dotenv file
        for name in ENV_MAPPING:
            if self.environ.get(name):
                values[name] = self.environ[name]

        return {ENV_MAPPING[name]: value for name, value in values.items() if name in ENV_MAPPING and value}

    @staticmethod
    def _parse_int(value: Any) -> Any:
        """Convert numeric strings, leaving anything else for validation to report."""
        if isinstance(value, int):
            return value
        try:
            return int(str(value).strip())
        except ValueError:
            return value
