"""Shipping the packaged backup to the remote host over SSH."""

import logging
import os
import shlex
from typing import List, Sequence

from ncbackup.config.manager import BackupConfig
from ncbackup.utils.commands import CommandResult, CommandRunner
from ncbackup.utils.errors import CommandError, TransportError, create_error_suggestions
from ncbackup.utils.files import format_size

from .staging import StagingDirectory, run_basename

logger = logging.getLogger(__name__)


class RemoteChannel:
    """Authenticated ssh/rsync access to the backup host."""

    def __init__(self, config: BackupConfig, runner: CommandRunner):
        self.config = config
        self.runner = runner

    def ssh_options(self) -> List[str]:
        return [
            "-i",
            self.config.ssh_key,
            "-p",
            str(self.config.remote_port),
            "-o",
            "BatchMode=yes",
        ]

    def ssh_command(self, remote_args: Sequence[str]) -> List[str]:
        """Build the local argv that runs ``remote_args`` on the backup host."""
        return ["ssh", *self.ssh_options(), self.config.ssh_target, shlex.join(remote_args)]

    def execute(self, remote_args: Sequence[str], check: bool = True) -> CommandResult:
        return self.runner.run(self.ssh_command(remote_args), check=check)

    def upload(self, local_path: str, remote_dir: str) -> CommandResult:
        """Copy one file into ``remote_dir`` with rsync over the same channel."""
        remote_shell = shlex.join(["ssh", *self.ssh_options()])
        return self.runner.run(
            [
                "rsync",
                "-az",
                "--partial",
                "-e",
                remote_shell,
                local_path,
                f"{self.config.ssh_target}:{remote_dir.rstrip('/')}/",
            ]
        )


class TransportManager:
    """Packages the staging directory and uploads it as a single archive."""

    def __init__(self, config: BackupConfig, channel: RemoteChannel, runner: CommandRunner):
        self.config = config
        self.channel = channel
        self.runner = runner

    @staticmethod
    def archive_name(run_id: str) -> str:
        return f"{run_basename(run_id)}.tar.gz"

    def remote_archive_path(self, run_id: str) -> str:
        return f"{self.config.remote_backup_dir.rstrip('/')}/{self.archive_name(run_id)}"

    def transfer(self, staging: StagingDirectory) -> str:
        """
        Create the remote directory, package staging and upload the package.

        The local package is removed whether or not the upload succeeded.

        Args:
            staging: Completed staging directory

        Returns:
            str: Remote path of the uploaded archive

        Raises:
            TransportError: If any step fails
        """
        logger.info("Transferring backup to VPS...")
        remote_dir = self.config.remote_backup_dir

        try:
            self.channel.execute(["mkdir", "-p", remote_dir])
        except CommandError as e:
            raise TransportError(
                "Failed to create remote backup directory",
                details=e.message,
                suggestions=create_error_suggestions("ssh_failed"),
            ) from e

        archive_path = os.path.join(staging.root, self.archive_name(staging.run_id))
        try:
            try:
                self.runner.run(
                    [
                        "tar",
                        "-czf",
                        archive_path,
                        "-C",
                        staging.root,
                        os.path.basename(staging.path),
                    ]
                )
            except CommandError as e:
                raise TransportError("Failed to create backup archive", details=e.message) from e

            if os.path.exists(archive_path):
                logger.info(f"Created archive {archive_path} ({format_size(os.path.getsize(archive_path))})")

            try:
                self.channel.upload(archive_path, remote_dir)
            except CommandError as e:
                raise TransportError(
                    "Failed to transfer backup to VPS",
                    details=e.message,
                    suggestions=create_error_suggestions("ssh_failed"),
                ) from e
        finally:
            if os.path.exists(archive_path):
                os.remove(archive_path)

        logger.info("Backup transfer completed")
        return self.remote_archive_path(staging.run_id)

    def remote_size(self, run_id: str) -> str:
        """Human-readable size of the uploaded archive, or ``unknown``."""
        result = self.channel.execute(["du", "-h", self.remote_archive_path(run_id)], check=False)
        if not result.ok or not result.stdout.strip():
            return "unknown"
        return result.stdout.split()[0]
