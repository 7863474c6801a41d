"""Backup pipeline for Nextcloud Docker deployments."""

from .manager import BackupManager, RunResult, RunState
from .retention import RetentionEnforcer
from .staging import StagingDirectory
from .transport import RemoteChannel, TransportManager

__all__ = [
    "BackupManager",
    "RunResult",
    "RunState",
    "RetentionEnforcer",
    "StagingDirectory",
    "RemoteChannel",
    "TransportManager",
]
