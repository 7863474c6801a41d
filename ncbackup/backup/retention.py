"""Retention policy enforcement on the backup host."""

import logging
from dataclasses import dataclass, field
from typing import List, Optional

from ncbackup.config.manager import BackupConfig
from ncbackup.utils.errors import CommandError

from .staging import ARCHIVE_PREFIX
from .transport import RemoteChannel

logger = logging.getLogger(__name__)

ARCHIVE_PATTERN = f"{ARCHIVE_PREFIX}*.tar.gz"


@dataclass
class RetentionResult:
    """Outcome of one pruning pass."""

    remaining: Optional[int] = None
    warnings: List[str] = field(default_factory=list)


class RetentionEnforcer:
    """
    Deletes remote archives older than the retention threshold.

    Pruning is best-effort: failures are reported as warnings and never
    raised.
    """

    def __init__(self, config: BackupConfig, channel: RemoteChannel):
        self.config = config
        self.channel = channel

    def prune_command(self, keep: Optional[str] = None) -> List[str]:
        """
        Build the remote ``find`` that deletes expired archives.

        ``-mtime +N`` matches files whose age, in whole days, exceeds N.

        Args:
            keep: Archive file name that must never be deleted
        """
        command = [
            "find",
            self.config.remote_backup_dir,
            "-name",
            ARCHIVE_PATTERN,
            "-type",
            "f",
            "-mtime",
            f"+{self.config.retention_days}",
        ]
        if keep:
            command += ["!", "-name", keep]
        return command + ["-delete"]

    def list_command(self) -> List[str]:
        return ["find", self.config.remote_backup_dir, "-name", ARCHIVE_PATTERN, "-type", "f"]

    def enforce(self, keep: Optional[str] = None) -> RetentionResult:
        """
        Prune expired archives, then count what is left.

        Args:
            keep: Name of the archive uploaded by the current run

        Returns:
            RetentionResult: Remaining archive count and any warnings
        """
        result = RetentionResult()
        logger.info(f"Cleaning up backups older than {self.config.retention_days} days on VPS...")

        try:
            self.channel.execute(self.prune_command(keep))
        except CommandError as e:
            warning = f"Failed to cleanup old backups: {e.message}"
            logger.warning(warning)
            result.warnings.append(warning)

        try:
            listing = self.channel.execute(self.list_command())
        except CommandError as e:
            warning = f"Failed to count remaining backups: {e.message}"
            logger.warning(warning)
            result.warnings.append(warning)
            return result

        result.remaining = len([line for line in listing.stdout.splitlines() if line.strip()])
        logger.info(f"Cleanup completed. {result.remaining} backup(s) remaining on VPS")
        return result
