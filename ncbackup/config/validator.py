"""Configuration validation for ncbackup."""

from typing import Any, Dict, List

import jsonschema

from .schemas import CONFIG_SCHEMA


class ConfigValidator:
    """Validates ncbackup configuration files and resolved settings."""

    def validate_file_config(self, config: Dict[str, Any]) -> List[str]:
        """
        Validate a configuration file against the schema.

        Args:
            config: Configuration dictionary loaded from YAML

        Returns:
            List[str]: List of validation errors (empty if valid)
        """
        errors = []

        validator = jsonschema.Draft7Validator(CONFIG_SCHEMA)
        for error in sorted(validator.iter_errors(config), key=lambda e: list(e.path)):
            location = ".".join(str(part) for part in error.path)
            if location:
                errors.append(f"{location}: {error.message}")
            else:
                errors.append(f"Schema validation failed: {error.message}")

        return errors

    def validate_settings(self, settings: Dict[str, Any]) -> List[str]:
        """
        Validate the merged settings a run depends on.

        Args:
            settings: Flat settings dictionary after all sources are merged

        Returns:
            List[str]: List of validation errors (empty if valid)
        """
        errors = []

        required = {
            "remote_host": "REMOTE_HOST",
            "remote_user": "REMOTE_USER",
            "ssh_key": "SSH_KEY",
            "db_password": "DB_PASS",
        }
        for key, env_name in required.items():
            if not settings.get(key):
                errors.append(f"{env_name} is not set")

        port = settings.get("remote_port")
        if not isinstance(port, int) or not 1 <= port <= 65535:
            errors.append(f"REMOTE_PORT must be an integer between 1 and 65535, got {port!r}")

        retention = settings.get("retention_days")
        if not isinstance(retention, int) or retention < 0:
            errors.append(f"RETENTION_DAYS must be a non-negative integer, got {retention!r}")

        return errors
