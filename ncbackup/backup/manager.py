"""Backup run orchestration.

A run walks a fixed sequence of states:

    START -> PREFLIGHT -> HEALTH_CHECK -> STAGE -> MAINTENANCE_ON
          -> CAPTURE_DB -> CAPTURE_DATA -> CAPTURE_VOLUME -> MANIFEST
          -> MAINTENANCE_OFF -> TRANSPORT -> RETENTION -> CLEANUP -> DONE

Any fatal error moves the run to FAILED. Maintenance mode and the staging
directory are held as scoped resources, so they are restored and removed on
every exit path, including SIGTERM and Ctrl-C.
"""

import logging
import signal
import threading
from contextlib import ExitStack, contextmanager
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Callable, Iterator, List, Optional, Tuple

from ncbackup.config.manager import BackupConfig
from ncbackup.containers.health import HealthChecker
from ncbackup.containers.manager import ContainerManager
from ncbackup.utils.commands import CommandRunner
from ncbackup.utils.errors import CommandError, NCBackupError, RunInterrupted

from .capture import DatabaseCapture, DataCapture, VolumeCapture
from .maintenance import MaintenanceMode
from .manifest import ManifestWriter
from .preflight import PreflightValidator
from .retention import RetentionEnforcer, RetentionResult
from .staging import StagingDirectory
from .transport import RemoteChannel, TransportManager

logger = logging.getLogger(__name__)


class RunState(Enum):
    """States of a backup run, in execution order."""

    START = "start"
    PREFLIGHT = "preflight"
    HEALTH_CHECK = "health_check"
    STAGE = "stage"
    MAINTENANCE_ON = "maintenance_on"
    CAPTURE_DB = "capture_db"
    CAPTURE_DATA = "capture_data"
    CAPTURE_VOLUME = "capture_volume"
    MANIFEST = "manifest"
    MAINTENANCE_OFF = "maintenance_off"
    TRANSPORT = "transport"
    RETENTION = "retention"
    CLEANUP = "cleanup"
    DONE = "done"
    FAILED = "failed"


@dataclass
class RunResult:
    """Outcome of one backup run."""

    run_id: str
    state: RunState = RunState.START
    states: List[RunState] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)
    remote_archive: Optional[str] = None
    error: Optional[str] = None

    @property
    def exit_code(self) -> int:
        return 0 if self.state == RunState.DONE else 1

    @property
    def success(self) -> bool:
        return self.state == RunState.DONE


@contextmanager
def _sigterm_raises() -> Iterator[None]:
    """Turn SIGTERM into RunInterrupted for the duration of a run."""
    if threading.current_thread() is not threading.main_thread():
        yield
        return

    def handler(signum, frame):
        raise RunInterrupted(f"Received signal {signum}, aborting backup")

    previous = signal.signal(signal.SIGTERM, handler)
    try:
        yield
    finally:
        signal.signal(signal.SIGTERM, previous)


class BackupManager:
    """Runs the Nextcloud backup pipeline for one configuration."""

    def __init__(
        self,
        config: BackupConfig,
        containers: Optional[ContainerManager] = None,
        runner: Optional[CommandRunner] = None,
    ):
        """
        Initialize backup manager.

        Args:
            config: Immutable run configuration
            containers: Docker access (created from the environment if omitted)
            runner: Local command runner
        """
        self.config = config
        self.containers = containers or ContainerManager()
        self.runner = runner or CommandRunner()

        self.channel = RemoteChannel(config, self.runner)
        self.preflight = PreflightValidator(self.containers)
        self.health = HealthChecker(self.containers)
        self.database = DatabaseCapture(config, self.containers)
        self.data = DataCapture(config, self.runner)
        self.volume = VolumeCapture(config, self.containers)
        self.manifest = ManifestWriter(config, self.containers)
        self.transport = TransportManager(config, self.channel, self.runner)
        self.retention = RetentionEnforcer(config, self.channel)

    @staticmethod
    def new_run_id() -> str:
        return datetime.now().strftime("%Y%m%d_%H%M%S")

    def check(self) -> List[str]:
        """
        Run preflight and dependency checks without touching anything else.

        Returns:
            List[str]: Warnings from preflight

        Raises:
            NCBackupError: If any check fails
        """
        warnings = self.preflight.validate(self.config.required_commands, self.config.ssh_key)
        self.health.check_dependencies(self.config.db_container, self.config.app_container)
        return warnings

    def plan(self, run_id: str) -> List[str]:
        """Describe what a run with ``run_id`` would do."""
        staging = StagingDirectory(self.config.staging_root, run_id)
        return [
            f"Create staging directory {staging.path}",
            f"Enable maintenance mode in {self.config.app_container}",
            f"Dump database '{self.config.db_name}' from {self.config.db_container}",
            f"Archive data directory {self.config.data_dir}",
            f"Archive Docker volume '{self.config.app_volume}' using {self.config.helper_image}",
            "Write backup_info.txt",
            f"Disable maintenance mode in {self.config.app_container}",
            f"Upload {self.transport.archive_name(run_id)} to "
            f"{self.config.ssh_target}:{self.config.remote_backup_dir}",
            f"Delete remote archives older than {self.config.retention_days} days",
            f"Remove {staging.path}",
        ]

    def prune(self) -> RetentionResult:
        """Apply the retention policy without running a backup."""
        self.preflight.check_commands(["ssh"])
        self.preflight.check_ssh_key(self.config.ssh_key)
        return self.retention.enforce()

    def run(self, run_id: Optional[str] = None) -> RunResult:
        """
        Execute one full backup run.

        Never raises for pipeline failures; the outcome is carried by the
        returned RunResult.

        Args:
            run_id: Timestamp token (generated if omitted)

        Returns:
            RunResult: Final state, visited states, warnings and exit code
        """
        run_id = run_id or self.new_run_id()
        result = RunResult(run_id=run_id)
        staging = StagingDirectory(self.config.staging_root, run_id)
        maintenance = MaintenanceMode(self.containers, self.config.app_container, self.config.app_user)

        logger.info("=== NextCloud Backup Started ===")
        self._enter(result, RunState.START)

        with ExitStack() as stack:
            # Unwound in reverse: maintenance off first, then staging removal
            stack.callback(staging.cleanup)
            stack.callback(maintenance.disable)

            # The previous SIGTERM handler is back in place before compensations run
            with _sigterm_raises():
                try:
                    for state, action in self._steps(result, staging, maintenance):
                        self._enter(result, state)
                        action()
                except NCBackupError as e:
                    self._fail(result, e.message, e.details)
                except KeyboardInterrupt:
                    self._fail(result, "Backup interrupted")
                except Exception as e:
                    logger.exception("Unexpected error during backup")
                    self._fail(result, f"Unexpected error: {e}")

        for warning in maintenance.warnings:
            if warning not in result.warnings:
                result.warnings.append(warning)

        if result.success:
            logger.info(f"=== NextCloud Backup Completed Successfully at {datetime.now():%a %b %d %H:%M:%S %Y} ===")
            self._log_remote_size(run_id)
            if result.warnings:
                logger.warning(f"Backup finished with {len(result.warnings)} warning(s)")

        return result

    def _steps(
        self,
        result: RunResult,
        staging: StagingDirectory,
        maintenance: MaintenanceMode,
    ) -> List[Tuple[RunState, Callable[[], None]]]:
        config = self.config

        def preflight():
            result.warnings.extend(self.preflight.validate(config.required_commands, config.ssh_key))
            # From here on every exit path tries to leave maintenance mode
            maintenance.arm()

        def transport():
            result.remote_archive = self.transport.transfer(staging)

        def retention():
            outcome = self.retention.enforce(keep=self.transport.archive_name(result.run_id))
            result.warnings.extend(outcome.warnings)

        return [
            (RunState.PREFLIGHT, preflight),
            (RunState.HEALTH_CHECK, lambda: self.health.check_dependencies(config.db_container, config.app_container)),
            (RunState.STAGE, staging.create),
            (RunState.MAINTENANCE_ON, maintenance.enable),
            (RunState.CAPTURE_DB, lambda: self.database.capture(staging.path)),
            (RunState.CAPTURE_DATA, lambda: self.data.capture(staging.path)),
            (RunState.CAPTURE_VOLUME, lambda: self.volume.capture(staging.path)),
            (RunState.MANIFEST, lambda: self.manifest.write(staging.path, result.run_id)),
            (RunState.MAINTENANCE_OFF, maintenance.disable),
            (RunState.TRANSPORT, transport),
            (RunState.RETENTION, retention),
            (RunState.CLEANUP, staging.cleanup),
            (RunState.DONE, lambda: None),
        ]

    def _enter(self, result: RunResult, state: RunState) -> None:
        logger.debug(f"State: {result.state.value} -> {state.value}")
        result.state = state
        result.states.append(state)

    def _fail(self, result: RunResult, message: str, details: Optional[str] = None) -> None:
        logger.error(f"ERROR: {message}")
        if details:
            logger.error(f"Details: {details}")
        result.error = message
        self._enter(result, RunState.FAILED)

    def _log_remote_size(self, run_id: str) -> None:
        try:
            size = self.transport.remote_size(run_id)
        except CommandError as e:
            logger.warning(f"Could not query remote backup size: {e.message}")
            return
        logger.info(f"Backup size: {size}")
