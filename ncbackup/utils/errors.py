"""Error handling utilities for ncbackup."""

import logging
import sys
import traceback
from typing import Optional

import click

logger = logging.getLogger(__name__)


class NCBackupError(Exception):
    """Base exception for ncbackup errors. Every subclass is fatal to a run."""

    def __init__(
        self,
        message: str,
        details: Optional[str] = None,
        suggestions: Optional[list] = None,
    ):
        self.message = message
        self.details = details
        self.suggestions = suggestions or []
        super().__init__(message)


class ConfigurationError(NCBackupError):
    """Raised when configuration is invalid or missing."""

    pass


class PreflightError(NCBackupError):
    """Raised when required tools or credentials are unavailable."""

    pass


class HealthCheckError(NCBackupError):
    """Raised when a dependent container is not running."""

    pass


class StagingError(NCBackupError):
    """Raised when the local staging directory cannot be created."""

    pass


class MaintenanceError(NCBackupError):
    """Raised when maintenance mode cannot be enabled."""

    pass


class CaptureError(NCBackupError):
    """Raised when producing a backup artifact fails."""

    pass


class TransportError(NCBackupError):
    """Raised when shipping the archive to the remote host fails."""

    pass


class DockerError(NCBackupError):
    """Raised when Docker operations fail."""

    pass


class CommandError(NCBackupError):
    """Raised when an external command exits with an unexpected code."""

    pass


class RunInterrupted(NCBackupError):
    """Raised inside the run when the process receives a termination signal."""

    pass


class ErrorHandler:
    """Handles and formats errors for user-friendly display."""

    def __init__(self, verbose: bool = False):
        self.verbose = verbose

    def handle_error(self, error: NCBackupError, context: Optional[str] = None) -> None:
        """
        Display a fatal error with its details and suggestions.

        Args:
            error: Error to display
            context: Optional context about when/where error occurred
        """
        click.echo(f"✗ {error.message}", err=True)

        if context:
            click.echo(f"Context: {context}", err=True)

        if error.details:
            click.echo(f"Details: {error.details}", err=True)

        if error.suggestions:
            click.echo("\nSuggestions:", err=True)
            for suggestion in error.suggestions:
                click.echo(f"  • {suggestion}", err=True)

        if self.verbose:
            click.echo("\nFull traceback:", err=True)
            traceback.print_exc()

    def exit_with_error(self, error: NCBackupError, context: Optional[str] = None, exit_code: int = 1) -> None:
        """Handle error, record it in the log and exit with specified code."""
        logger.error(f"ERROR: {error.message}")
        if error.details:
            logger.error(f"Details: {error.details}")
        self.handle_error(error, context)
        sys.exit(exit_code)


def create_error_suggestions(error_type: str, **kwargs) -> list:
    """
    Create contextual error suggestions based on error type and context.

    Args:
        error_type: Type of error
        **kwargs: Additional context information (``command``, ``container``)

    Returns:
        list: List of suggestion strings
    """
    suggestions = {
        "docker_not_running": [
            "Start the Docker daemon",
            "Verify Docker permissions for current user",
        ],
        "command_missing": [
            f"Install '{kwargs.get('command', 'the missing command')}' with your package manager",
            "Check that PATH includes the directory containing the command",
        ],
        "ssh_key_missing": [
            "Set SSH_KEY to the private key used for the backup host",
            "Generate a key with ssh-keygen and copy it with ssh-copy-id",
        ],
        "container_down": [
            f"Start the container: docker start {kwargs.get('container', '<name>')}",
            "Check the container logs for startup errors",
        ],
        "ssh_failed": [
            "Verify REMOTE_HOST, REMOTE_PORT and REMOTE_USER",
            "Test the connection manually with ssh -i $SSH_KEY",
            "Check that the remote host key is already known",
        ],
        "configuration_invalid": [
            "Check YAML syntax in configuration file",
            "Verify all required environment variables are set",
        ],
    }

    return suggestions.get(error_type, [])


def format_validation_errors(errors: list) -> str:
    """
    Format validation errors for display.

    Args:
        errors: List of validation error messages

    Returns:
        str: Formatted error message
    """
    if not errors:
        return "No validation errors"

    if len(errors) == 1:
        return f"Validation error: {errors[0]}"

    formatted = "Validation errors:\n"
    for i, error in enumerate(errors, 1):
        formatted += f"  {i}. {error}\n"

    return formatted.strip()
