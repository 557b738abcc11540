"""Docker client factory and runtime client adapter.

``RuntimeClient`` is the only place that talks to docker-py. It exposes the
handful of blocking calls the container lifecycle needs and translates
docker-py failures into dockrun exceptions. Callers on the event loop run
these methods through ``run_in_executor``.
"""

from dataclasses import dataclass
from typing import Any, Dict, Iterator, List, Optional, Sequence

import docker
import structlog
from docker.errors import DockerException, ImageNotFound
from requests.exceptions import RequestException

from ...config import DockerConfig, settings
from ...models.errors import (
    ContainerCreateError,
    ContainerStartError,
    ImageTransferError,
    LogStreamError,
    RemovalError,
    RuntimeReportedError,
    StopError,
)

logger = structlog.get_logger(__name__)

CLIENT_ERRORS = (DockerException, RequestException)


@dataclass(frozen=True)
class WaitResult:
    """Outcome of waiting for a container to stop running."""

    status_code: Optional[int]
    error: Optional[str] = None

    @classmethod
    def from_response(cls, response: Dict[str, Any]) -> "WaitResult":
        error = response.get("Error") or None
        if isinstance(error, dict):
            error = error.get("Message") or None
        return cls(status_code=response.get("StatusCode"), error=error)


class DockerClientFactory:
    """Creates Docker clients from configuration."""

    def __init__(self, config: Optional[DockerConfig] = None):
        self._config = config or settings.docker

    def create_client(self) -> docker.DockerClient:
        """Create a Docker client and verify the engine answers."""
        if self._config.docker_host:
            client = docker.DockerClient(
                base_url=self._config.docker_host,
                timeout=self._config.docker_timeout,
            )
        else:
            client = docker.from_env(timeout=self._config.docker_timeout)
        client.ping()
        logger.debug(
            "Docker client initialized",
            base_url=client.api.base_url,
            api_version=client.api.api_version,
        )
        return client

    def create_runtime_client(self) -> "RuntimeClient":
        """Create a runtime client adapter over a fresh Docker client."""
        return RuntimeClient(self.create_client())


class RuntimeClient:
    """Blocking adapter over the Docker engine API.

    Args:
        client: docker-py client; only its low-level ``api`` is used
    """

    def __init__(self, client: docker.DockerClient):
        self._client = client
        self._api = client.api

    def search_image(self, ref: str, limit: int = 1) -> List[Dict[str, Any]]:
        """Search the registry for ``ref``."""
        try:
            return self._api.search(ref, limit=limit)
        except CLIENT_ERRORS as e:
            raise ImageTransferError(ref, f"image search failed for {ref}: {e}") from e

    def image_exists_locally(self, ref: str) -> bool:
        """Check whether ``ref`` is already present in the local image store."""
        try:
            self._api.inspect_image(ref)
            return True
        except ImageNotFound:
            return False
        except CLIENT_ERRORS as e:
            raise ImageTransferError(ref, f"image inspect failed for {ref}: {e}") from e

    def pull_image(self, ref: str) -> Iterator[Dict[str, Any]]:
        """Pull ``ref``, yielding the engine's progress messages.

        The engine reports some pull failures inside the progress stream
        rather than as an HTTP error; those are raised here too.
        """
        try:
            for progress in self._api.pull(ref, stream=True, decode=True):
                if isinstance(progress, dict) and progress.get("error"):
                    raise ImageTransferError(
                        ref, f"image pull failed for {ref}: {progress['error']}"
                    )
                yield progress
        except CLIENT_ERRORS as e:
            raise ImageTransferError(ref, f"image pull failed for {ref}: {e}") from e

    def create_container(
        self,
        image: str,
        command: Sequence[str],
        entrypoint: Sequence[str],
        name: str,
        tty: bool = True,
        labels: Optional[Dict[str, str]] = None,
    ) -> str:
        """Create a container and return its id."""
        try:
            created = self._api.create_container(
                image=image,
                command=list(command),
                entrypoint=list(entrypoint),
                name=name,
                tty=tty,
                labels=labels or None,
            )
        except CLIENT_ERRORS as e:
            raise ContainerCreateError(f"failed to create container {name}: {e}") from e
        for warning in created.get("Warnings") or []:
            logger.warning("Container create warning", name=name, warning=warning)
        return created["Id"]

    def start_container(self, container_id: str) -> None:
        try:
            self._api.start(container_id)
        except CLIENT_ERRORS as e:
            raise ContainerStartError(
                f"failed to start container {container_id}: {e}",
                container_id=container_id,
            ) from e

    def stream_logs(
        self,
        container_id: str,
        stdout: bool = True,
        stderr: bool = True,
        follow: bool = True,
    ):
        """Open a live log stream.

        Returns:
            Iterator of raw byte chunks. docker-py returns a closable stream;
            closing it unblocks a reader waiting on the socket.
        """
        try:
            return self._api.logs(
                container_id, stdout=stdout, stderr=stderr, stream=True, follow=follow
            )
        except CLIENT_ERRORS as e:
            raise LogStreamError(
                f"failed to open log stream: {e}", container_id=container_id
            ) from e

    def wait_not_running(self, container_id: str) -> WaitResult:
        """Block until the container is no longer running.

        Raises:
            RuntimeReportedError: The wait request itself failed.
        """
        try:
            response = self._api.wait(container_id, condition="not-running")
        except CLIENT_ERRORS as e:
            raise RuntimeReportedError(str(e), container_id=container_id) from e
        return WaitResult.from_response(response)

    def stop_container(self, container_id: str, timeout: Optional[int] = None) -> None:
        try:
            if timeout is None:
                self._api.stop(container_id)
            else:
                self._api.stop(container_id, timeout=timeout)
        except CLIENT_ERRORS as e:
            raise StopError(
                f"failed to stop container {container_id}: {e}",
                container_id=container_id,
            ) from e

    def remove_container(self, container_ref: str, force: bool = True) -> None:
        """Remove a container by id or name."""
        try:
            self._api.remove_container(container_ref, force=force)
        except CLIENT_ERRORS as e:
            raise RemovalError(
                f"failed to remove container {container_ref}: {e}",
                container_id=container_ref,
            ) from e

    def close(self) -> None:
        self._client.close()
