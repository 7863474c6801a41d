"""Preflight validation for backup runs."""

import logging
import os
import shutil
import stat
from typing import Iterable, List

from ncbackup.containers.manager import ContainerManager
from ncbackup.utils.errors import DockerError, PreflightError, create_error_suggestions

logger = logging.getLogger(__name__)

SSH_KEY_MODE = 0o600


class PreflightValidator:
    """Checks tools, credentials and the container runtime before a run touches anything."""

    def __init__(self, containers: ContainerManager):
        self.containers = containers

    def validate(self, required_commands: Iterable[str], ssh_key: str) -> List[str]:
        """
        Run every preflight check.

        Commands and the SSH key are checked before the Docker daemon is
        contacted.

        Args:
            required_commands: Command names that must resolve on PATH
            ssh_key: Path to the private key used for the remote channel

        Returns:
            List[str]: Warnings raised while checking (e.g. corrected key mode)

        Raises:
            PreflightError: If a command, the key, or the daemon is unavailable
        """
        self.check_commands(required_commands)
        warnings = self.check_ssh_key(ssh_key)

        try:
            self.containers.ping()
        except DockerError as e:
            raise PreflightError(e.message, details=e.details, suggestions=e.suggestions) from e

        logger.info("Preflight checks passed")
        return warnings

    def check_commands(self, required_commands: Iterable[str]) -> None:
        """Ensure each command resolves on PATH."""
        for command in required_commands:
            path = shutil.which(command)
            if path is None:
                raise PreflightError(
                    f"Required command '{command}' not found",
                    suggestions=create_error_suggestions("command_missing", command=command),
                )
            logger.debug(f"Found {command} at {path}")

    def check_ssh_key(self, ssh_key: str) -> List[str]:
        """
        Ensure the SSH key exists and is only readable by its owner.

        A key with any other mode is corrected to 0600.

        Returns:
            List[str]: Warning messages for corrected permissions

        Raises:
            PreflightError: If the key is missing or its mode cannot be fixed
        """
        if not os.path.isfile(ssh_key):
            raise PreflightError(
                f"SSH key not found at {ssh_key}",
                suggestions=create_error_suggestions("ssh_key_missing"),
            )

        mode = stat.S_IMODE(os.stat(ssh_key).st_mode)
        if mode == SSH_KEY_MODE:
            return []

        message = f"SSH key {ssh_key} has mode {mode:o}, setting {SSH_KEY_MODE:o}"
        logger.warning(message)
        try:
            os.chmod(ssh_key, SSH_KEY_MODE)
        except OSError as e:
            raise PreflightError(f"Failed to set SSH key permissions on {ssh_key}", details=str(e)) from e

        return [message]
