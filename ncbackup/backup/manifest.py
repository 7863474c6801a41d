"""Manifest (backup_info.txt) generation."""

import json
import logging
import os
import socket
from datetime import datetime

from jinja2 import Environment, FileSystemLoader

from ncbackup.config.manager import BackupConfig
from ncbackup.containers.manager import ContainerManager
from ncbackup.utils.errors import CaptureError, DockerError

from .capture import APP_ARCHIVE, DATA_ARCHIVE, DATABASE_DUMP

logger = logging.getLogger(__name__)

MANIFEST_NAME = "backup_info.txt"
UNKNOWN_VERSION = "unknown"


class ManifestWriter:
    """Writes the human-readable description bundled with every archive."""

    def __init__(self, config: BackupConfig, containers: ContainerManager):
        self.config = config
        self.containers = containers

        templates_dir = os.path.join(os.path.dirname(__file__), "..", "templates")
        self.jinja_env = Environment(
            loader=FileSystemLoader(templates_dir),
            trim_blocks=True,
            lstrip_blocks=True,
            keep_trailing_newline=True,
        )

    def nextcloud_version(self) -> str:
        """
        Ask the application container for its Nextcloud version.

        Returns whatever could be retrieved; never raises.
        """
        try:
            result = self.containers.exec_command(
                self.config.app_container,
                ["php", "occ", "status", "--output=json"],
                user=self.config.app_user,
            )
        except DockerError as e:
            logger.warning(f"Could not query NextCloud version: {e.message}")
            return UNKNOWN_VERSION

        if not result.ok:
            logger.warning(f"Could not query NextCloud version: {result.describe()}")
            return UNKNOWN_VERSION

        try:
            status = json.loads(result.stdout)
        except ValueError:
            raw = result.stdout.strip()
            logger.warning("NextCloud status output is not JSON")
            return raw.splitlines()[0] if raw else UNKNOWN_VERSION

        if not isinstance(status, dict):
            return UNKNOWN_VERSION

        return str(status.get("version") or status.get("versionstring") or UNKNOWN_VERSION)

    def render(self, run_id: str) -> str:
        data_dir = self.config.data_dir.rstrip("/")
        template = self.jinja_env.get_template("backup_info.txt.j2")
        return template.render(
            backup_date=datetime.now().strftime("%a %b %d %H:%M:%S %Y"),
            run_id=run_id,
            hostname=socket.gethostname(),
            nextcloud_version=self.nextcloud_version(),
            files=[
                (DATABASE_DUMP, "MariaDB dump"),
                (DATA_ARCHIVE, f"User data from {data_dir}"),
                (APP_ARCHIVE, "Application files and config from Docker volume"),
            ],
            database_dump=DATABASE_DUMP,
            data_archive=DATA_ARCHIVE,
            app_archive=APP_ARCHIVE,
            data_parent=os.path.dirname(data_dir) or "/",
            db_container=self.config.db_container,
            db_user=self.config.db_user,
            db_name=self.config.db_name,
            app_container=self.config.app_container,
            app_user=self.config.app_user,
            app_volume=self.config.app_volume,
            helper_image=self.config.helper_image,
        )

    def write(self, staging_dir: str, run_id: str) -> str:
        """
        Write the manifest into the staging directory.

        Returns:
            str: Path of the manifest file

        Raises:
            CaptureError: If the file cannot be written
        """
        logger.info("Creating backup information file...")
        path = os.path.join(staging_dir, MANIFEST_NAME)
        content = self.render(run_id)

        try:
            with open(path, "w", encoding="utf-8") as f:
                f.write(content)
        except OSError as e:
            raise CaptureError(f"Failed to write {MANIFEST_NAME}", details=str(e)) from e

        return path
