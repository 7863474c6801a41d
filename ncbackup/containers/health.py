"""Dependency health checks for ncbackup."""

import logging

from ncbackup.utils.errors import HealthCheckError, create_error_suggestions

from .manager import ContainerManager

logger = logging.getLogger(__name__)


class HealthChecker:
    """Confirms the database and application containers are running."""

    def __init__(self, containers: ContainerManager):
        self.containers = containers

    def check_dependencies(self, db_container: str, app_container: str) -> None:
        """
        Verify both dependent containers are active.

        Args:
            db_container: Database container name
            app_container: Nextcloud application container name

        Raises:
            HealthCheckError: Naming the first dependency that is down
        """
        for role, name in (("Database", db_container), ("NextCloud", app_container)):
            if not self.containers.is_running(name):
                raise HealthCheckError(
                    f"{role} container '{name}' is not running",
                    suggestions=create_error_suggestions("container_down", container=name),
                )
            logger.debug(f"{role} container '{name}' is running")

        logger.info("Dependent containers are running")
