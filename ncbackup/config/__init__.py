"""Configuration management for ncbackup."""

from .manager import DEFAULT_LOG_FILE, BackupConfig, ConfigManager
from .schemas import CONFIG_SCHEMA

__all__ = ["BackupConfig", "ConfigManager", "CONFIG_SCHEMA", "DEFAULT_LOG_FILE"]
