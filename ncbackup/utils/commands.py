"""External command execution for ncbackup.

Every local or remote tool is invoked from an argument list, never from a
shell string, and checked against the exit codes it is allowed to return.
"""

import logging
import shlex
import subprocess
from dataclasses import dataclass
from typing import Iterable, List, Optional, Sequence

from .errors import CommandError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CommandResult:
    """Outcome of one external command."""

    args: List[str]
    returncode: int
    stdout: str = ""
    stderr: str = ""

    @property
    def ok(self) -> bool:
        return self.returncode == 0

    def describe(self) -> str:
        """Short human-readable description for log lines and errors."""
        detail = self.stderr.strip() or self.stdout.strip()
        text = f"'{shlex.join(self.args)}' exited with {self.returncode}"
        if detail:
            text += f": {detail.splitlines()[-1]}"
        return text


class CommandRunner:
    """Runs external commands synchronously."""

    def __init__(self, timeout: Optional[int] = None):
        """
        Initialize command runner.

        Args:
            timeout: Optional timeout in seconds applied to every command
        """
        self.timeout = timeout

    def run(self, args: Sequence[str], accepted: Iterable[int] = (0,), check: bool = True) -> CommandResult:
        """
        Run a command and capture its output.

        Args:
            args: Command and arguments
            accepted: Exit codes that count as success
            check: Raise CommandError when the exit code is not accepted

        Returns:
            CommandResult: Exit code and captured output

        Raises:
            CommandError: If the command cannot be started, times out, or
                exits with a code outside ``accepted`` while ``check`` is set
        """
        args = [str(arg) for arg in args]
        logger.debug(f"Running: {shlex.join(args)}")

        try:
            completed = subprocess.run(
                args,
                capture_output=True,
                text=True,
                timeout=self.timeout,
            )
        except FileNotFoundError as e:
            raise CommandError(f"Command not found: {args[0]}", details=str(e)) from e
        except subprocess.TimeoutExpired as e:
            raise CommandError(f"Command timed out after {self.timeout}s: {shlex.join(args)}") from e

        result = CommandResult(
            args=args,
            returncode=completed.returncode,
            stdout=completed.stdout or "",
            stderr=completed.stderr or "",
        )

        if check and result.returncode not in tuple(accepted):
            raise CommandError(f"Command failed: {result.describe()}", details=result.stderr.strip() or None)

        return result
