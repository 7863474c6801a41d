"""Artifact capture: database dump, data directory and application volume."""

import gzip
import logging
import os
import shutil
import tempfile

from ncbackup.config.manager import BackupConfig
from ncbackup.containers.manager import ContainerManager
from ncbackup.utils.commands import CommandRunner
from ncbackup.utils.errors import CaptureError, CommandError, DockerError
from ncbackup.utils.files import format_size, is_nonempty_file, verify_gzip

logger = logging.getLogger(__name__)

DATABASE_DUMP = "database.sql.gz"
DATA_ARCHIVE = "nextcloud_data.tar.gz"
APP_ARCHIVE = "nextcloud_app.tar.gz"


class DatabaseCapture:
    """Dumps the MariaDB database through ``mysqldump`` in its container."""

    def __init__(self, config: BackupConfig, containers: ContainerManager):
        self.config = config
        self.containers = containers

    def dump_command(self):
        return [
            "mysqldump",
            "-u",
            self.config.db_user,
            "--single-transaction",
            "--routines",
            "--triggers",
            "--add-drop-database",
            "--databases",
            self.config.db_name,
        ]

    def capture(self, staging_dir: str) -> str:
        """
        Write a gzip-compressed dump into the staging directory.

        The password reaches mysqldump through ``MYSQL_PWD`` in the exec
        environment, never through its arguments.

        Args:
            staging_dir: Run staging directory

        Returns:
            str: Path of the dump file

        Raises:
            CaptureError: If the dump fails, is empty, or does not decompress
        """
        logger.info("Backing up MariaDB database...")
        dump_path = os.path.join(staging_dir, DATABASE_DUMP)

        try:
            with gzip.open(dump_path, "wb") as sink:
                result = self.containers.exec_stream(
                    self.config.db_container,
                    self.dump_command(),
                    sink,
                    environment={"MYSQL_PWD": self.config.db_password},
                )
        except DockerError as e:
            raise CaptureError("Database backup failed", details=e.message) from e
        except OSError as e:
            raise CaptureError(f"Database backup failed - cannot write {dump_path}", details=str(e)) from e

        if not result.ok:
            raise CaptureError("Database backup failed - mysqldump returned an error", details=result.describe())

        if not is_nonempty_file(dump_path):
            raise CaptureError("Database backup failed - backup file is missing or empty")

        if not verify_gzip(dump_path):
            raise CaptureError("Database backup failed - backup file is corrupted")

        size = format_size(os.path.getsize(dump_path))
        logger.info(f"Database backup completed successfully (Size: {size})")
        return dump_path


class DataCapture:
    """Archives the host-mounted Nextcloud data directory with ``tar``."""

    def __init__(self, config: BackupConfig, runner: CommandRunner):
        self.config = config
        self.runner = runner

    def capture(self, staging_dir: str) -> str:
        """
        Archive the data directory into the staging directory.

        Raises:
            CaptureError: If tar exits non-zero
        """
        logger.info("Backing up NextCloud data directory...")
        archive_path = os.path.join(staging_dir, DATA_ARCHIVE)
        data_dir = self.config.data_dir.rstrip("/")

        try:
            self.runner.run(
                [
                    "tar",
                    "-czf",
                    archive_path,
                    "-C",
                    os.path.dirname(data_dir) or "/",
                    os.path.basename(data_dir),
                ]
            )
        except CommandError as e:
            raise CaptureError("Data backup failed", details=e.message) from e

        logger.info("Data backup completed")
        return archive_path


class VolumeCapture:
    """Archives the Nextcloud Docker volume through a read-only helper container."""

    def __init__(self, config: BackupConfig, containers: ContainerManager):
        self.config = config
        self.containers = containers

    def capture(self, staging_dir: str) -> str:
        """
        Archive the application volume and move the result into staging.

        Raises:
            CaptureError: If the helper container fails or the move fails
        """
        logger.info("Backing up NextCloud application files and config...")
        temp_dir = tempfile.mkdtemp(prefix="ncbackup_volume_")

        try:
            try:
                result = self.containers.run_helper(
                    self.config.helper_image,
                    ["tar", "-czf", f"/backup/{APP_ARCHIVE}", "-C", "/source", "."],
                    volumes={
                        self.config.app_volume: {"bind": "/source", "mode": "ro"},
                        temp_dir: {"bind": "/backup", "mode": "rw"},
                    },
                )
            except DockerError as e:
                raise CaptureError("Failed to backup NextCloud application files", details=e.message) from e

            if not result.ok:
                raise CaptureError("Failed to backup NextCloud application files", details=result.describe())

            target = os.path.join(staging_dir, APP_ARCHIVE)
            try:
                shutil.move(os.path.join(temp_dir, APP_ARCHIVE), target)
            except OSError as e:
                raise CaptureError("Failed to move application backup", details=str(e)) from e
        finally:
            shutil.rmtree(temp_dir, ignore_errors=True)

        logger.info("Application and config backup completed")
        return target
