"""Nextcloud maintenance mode control."""

import logging
from typing import List, Optional

from ncbackup.containers.manager import ContainerManager
from ncbackup.utils.errors import DockerError, MaintenanceError

logger = logging.getLogger(__name__)


class MaintenanceMode:
    """
    Toggles ``occ maintenance:mode`` inside the application container.

    ``disable`` issues at most one command per instance; later calls are
    no-ops, so the explicit pipeline step and the exit-path compensation can
    both call it.
    """

    def __init__(self, containers: ContainerManager, container: str, user: str = "www-data"):
        self.containers = containers
        self.container = container
        self.user = user
        self.armed = False
        self.disable_attempted = False
        self.warnings: List[str] = []

    def arm(self) -> None:
        """Commit to one disable attempt on every later exit path."""
        self.armed = True

    def _occ(self, flag: str):
        return self.containers.exec_command(
            self.container,
            ["php", "occ", "maintenance:mode", flag],
            user=self.user,
        )

    def enable(self) -> None:
        """
        Put Nextcloud into maintenance mode.

        Raises:
            MaintenanceError: If the command fails
        """
        logger.info("Enabling NextCloud maintenance mode...")
        # Armed before the call: a failed enable may still have switched the mode
        self.armed = True

        try:
            result = self._occ("--on")
        except DockerError as e:
            raise MaintenanceError("Failed to enable maintenance mode", details=e.message) from e

        if not result.ok:
            raise MaintenanceError("Failed to enable maintenance mode", details=result.describe())

    def disable(self) -> Optional[str]:
        """
        Restore normal mode, reporting failure as a warning.

        Returns:
            Optional[str]: Warning message if the attempt failed
        """
        if not self.armed or self.disable_attempted:
            return None

        self.disable_attempted = True
        logger.info("Disabling NextCloud maintenance mode...")

        try:
            result = self._occ("--off")
            error = None if result.ok else result.describe()
        except DockerError as e:
            error = e.message

        if error is None:
            return None

        warning = f"Failed to disable maintenance mode: {error}"
        logger.warning(warning)
        self.warnings.append(warning)
        return warning
