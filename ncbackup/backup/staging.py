"""Local staging directory for one backup run."""

import logging
import os
import shutil

from ncbackup.utils.errors import StagingError

logger = logging.getLogger(__name__)

ARCHIVE_PREFIX = "nextcloud_backup_"


def run_basename(run_id: str) -> str:
    """Name shared by the staging directory and the packaged archive."""
    return f"{ARCHIVE_PREFIX}{run_id}"


class StagingDirectory:
    """
    Exclusive working directory holding a run's artifacts before transport.

    ``cleanup`` may be called any number of times, before or after ``create``.
    """

    def __init__(self, root: str, run_id: str):
        """
        Initialize staging directory.

        Args:
            root: Parent directory for staging (e.g. /tmp)
            run_id: Timestamp token identifying the run
        """
        self.root = root
        self.run_id = run_id
        self.path = os.path.join(root, run_basename(run_id))
        self._created = False

    def create(self) -> str:
        """
        Create the directory and any missing parents.

        Returns:
            str: Path of the staging directory

        Raises:
            StagingError: If the directory exists already or cannot be created
        """
        logger.info(f"Creating local backup directory: {self.path}")
        try:
            os.makedirs(self.path, exist_ok=False)
        except FileExistsError as e:
            raise StagingError(f"Staging directory already exists: {self.path}") from e
        except OSError as e:
            raise StagingError(f"Failed to create backup directory {self.path}", details=str(e)) from e

        self._created = True
        return self.path

    def file(self, name: str) -> str:
        return os.path.join(self.path, name)

    def cleanup(self) -> None:
        """Remove the directory and everything under it."""
        if not self._created:
            return

        if os.path.exists(self.path):
            logger.info("Cleaning up temporary files...")
            shutil.rmtree(self.path, ignore_errors=True)

        if os.path.exists(self.path):
            logger.warning(f"Could not fully remove staging directory {self.path}")
        else:
            self._created = False

    @property
    def exists(self) -> bool:
        return os.path.isdir(self.path)
