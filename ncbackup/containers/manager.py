"""Docker container access for ncbackup."""

import logging
from typing import Any, BinaryIO, Dict, List, Optional

import docker
from docker.errors import APIError, DockerException, NotFound
from requests.exceptions import RequestException

from ncbackup.utils.commands import CommandResult
from ncbackup.utils.errors import DockerError, create_error_suggestions

logger = logging.getLogger(__name__)


def _decode(data: Optional[bytes]) -> str:
    return data.decode("utf-8", errors="replace") if data else ""


class ContainerManager:
    """Runs commands in existing containers and in short-lived helper containers."""

    def __init__(self, client: Any = None):
        """
        Initialize container manager.

        Args:
            client: Optional preconfigured Docker client
        """
        self._client = client

    @property
    def client(self) -> Any:
        """Get Docker client, creating it if necessary."""
        if self._client is None:
            try:
                self._client = docker.from_env()
            except (DockerException, RequestException) as e:
                raise DockerError(
                    f"Cannot connect to Docker daemon: {e}",
                    suggestions=create_error_suggestions("docker_not_running"),
                ) from e

        return self._client

    def ping(self) -> None:
        """
        Verify the Docker daemon answers.

        Raises:
            DockerError: If the daemon is unreachable
        """
        try:
            self.client.ping()
        except (DockerException, RequestException) as e:
            raise DockerError(
                f"Docker daemon is not responding: {e}",
                suggestions=create_error_suggestions("docker_not_running"),
            ) from e

    def is_running(self, name: str) -> bool:
        """
        Check whether a container exists and is running.

        Args:
            name: Container name or ID

        Returns:
            bool: True if the container status is ``running``
        """
        try:
            container = self.client.containers.get(name)
        except NotFound:
            return False
        except (APIError, RequestException) as e:
            raise DockerError(f"Failed to inspect container '{name}': {e}") from e

        return container.status == "running"

    def exec_command(
        self,
        name: str,
        command: List[str],
        user: str = "",
        environment: Optional[Dict[str, str]] = None,
    ) -> CommandResult:
        """
        Run a command inside a running container and collect its output.

        Args:
            name: Container name or ID
            command: Command and arguments
            user: User to run the command as (container default if empty)
            environment: Extra environment variables for the exec session

        Returns:
            CommandResult: Exit code and decoded output

        Raises:
            DockerError: If the container is missing or the daemon call fails
        """
        container = self._get_container(name)

        try:
            exit_code, output = container.exec_run(
                command,
                user=user,
                environment=environment,
                demux=True,
            )
        except (APIError, RequestException) as e:
            raise DockerError(f"Failed to exec in container '{name}': {e}") from e

        stdout, stderr = output if output else (None, None)
        return CommandResult(
            args=list(command),
            returncode=exit_code,
            stdout=_decode(stdout),
            stderr=_decode(stderr),
        )

    def exec_stream(
        self,
        name: str,
        command: List[str],
        sink: BinaryIO,
        user: str = "",
        environment: Optional[Dict[str, str]] = None,
    ) -> CommandResult:
        """
        Run a command inside a container, streaming stdout into ``sink``.

        The exit code is read back after the stream ends, so large dumps never
        have to fit in memory.

        Args:
            name: Container name or ID
            command: Command and arguments
            sink: Binary file-like object receiving stdout
            user: User to run the command as
            environment: Extra environment variables for the exec session

        Returns:
            CommandResult: Exit code and collected stderr (stdout is not kept)

        Raises:
            DockerError: If the container is missing or the daemon call fails
        """
        container = self._get_container(name)
        api = self.client.api
        errors = []

        try:
            exec_id = api.exec_create(
                container.id,
                command,
                stdout=True,
                stderr=True,
                user=user,
                environment=environment,
            )["Id"]

            for stdout, stderr in api.exec_start(exec_id, stream=True, demux=True):
                if stdout:
                    sink.write(stdout)
                if stderr:
                    errors.append(stderr)

            exit_code = api.exec_inspect(exec_id)["ExitCode"]
        except (APIError, RequestException) as e:
            raise DockerError(f"Failed to exec in container '{name}': {e}") from e

        return CommandResult(
            args=list(command),
            returncode=exit_code,
            stderr=_decode(b"".join(errors)),
        )

    def run_helper(self, image: str, command: List[str], volumes: Dict[str, Dict[str, str]]) -> CommandResult:
        """
        Run a short-lived helper container and wait for it to exit.

        Args:
            image: Image to run
            command: Command and arguments
            volumes: Docker SDK volume specification

        Returns:
            CommandResult: Exit status and container logs

        Raises:
            DockerError: If the container cannot be created or inspected
        """
        try:
            helper = self.client.containers.run(
                image,
                command=command,
                volumes=volumes,
                detach=True,
            )
        except (DockerException, RequestException) as e:
            raise DockerError(f"Failed to start helper container from '{image}': {e}") from e

        try:
            status = helper.wait()
            logs = helper.logs()
        except (DockerException, RequestException) as e:
            raise DockerError(f"Helper container from '{image}' failed: {e}") from e
        finally:
            try:
                helper.remove(force=True)
            except (DockerException, RequestException) as e:
                logger.warning(f"Could not remove helper container: {e}")

        return CommandResult(
            args=list(command),
            returncode=status.get("StatusCode", 1),
            stderr=_decode(logs),
        )

    def _get_container(self, name: str) -> Any:
        try:
            return self.client.containers.get(name)
        except NotFound as e:
            raise DockerError(
                f"Container '{name}' not found",
                suggestions=create_error_suggestions("container_down", container=name),
            ) from e
        except (APIError, RequestException) as e:
            raise DockerError(f"Failed to inspect container '{name}': {e}") from e
