"""Container lifecycle management.

A ``ContainerHandle`` owns one container from image resolution to removal:

    handle = ContainerHandle(scope, "alpine:3.18", "echo hi", client=client, cleanup=cleanup)
    async with handle:
        await handle.create()
        await handle.start()
        async for event in handle.events():
            ...
"""

import asyncio
from typing import Optional, Sequence, Union

import structlog

from ...config import DockerConfig, settings
from ...models.container import ContainerSpec, ContainerState
from ...models.errors import (
    ContainerCreateError,
    ContainerStartError,
    ImageNotFoundError,
    InvalidStateError,
)
from ...models.events import TerminationReason
from .cleanup import CleanupCoordinator
from .client import RuntimeClient
from .multiplexer import EventMultiplexer, EventStream
from .utils import run_in_executor

logger = structlog.get_logger(__name__)


class ContainerHandle:
    """Manages the lifecycle of a single container.

    Args:
        scope: Owning cancellable scope; setting it stops and removes the
            running container
        image: Image reference to run
        command: Command executed through the configured shell
        client: Runtime client adapter
        cleanup: Cleanup coordinator shared by handles using ``client``
        config: Docker settings (defaults to the global settings)
    """

    def __init__(
        self,
        scope: asyncio.Event,
        image: str,
        command: Union[str, Sequence[str]],
        client: RuntimeClient,
        cleanup: Optional[CleanupCoordinator] = None,
        config: Optional[DockerConfig] = None,
    ):
        self._config = config or settings.docker
        self.spec = ContainerSpec.build(
            image, command, name_prefix=self._config.container_name_prefix
        )
        self.scope = scope
        self._client = client
        self._cleanup = cleanup or CleanupCoordinator(client)
        self.container_id: Optional[str] = None
        self.state = ContainerState.UNRESOLVED
        self.outcome: Optional[TerminationReason] = None
        self._events: Optional[EventStream] = None
        self._log = logger.bind(name=self.spec.name, image=self.spec.image)

    @property
    def name(self) -> str:
        return self.spec.name

    async def create(self) -> str:
        """Resolve the image and create (but do not start) the container.

        Returns:
            The runtime-assigned container id

        Raises:
            ImageNotFoundError: The image reference matched nothing
            ImageTransferError: Searching or pulling the image failed
            ContainerCreateError: The runtime refused to create the container
        """
        self._require_state(ContainerState.UNRESOLVED, "create")

        await self._resolve_image()

        try:
            container_id = await run_in_executor(
                self._client.create_container,
                self.spec.image,
                self.spec.command,
                self._config.get_entrypoint(),
                self.spec.name,
                True,
                self.spec.labels,
            )
        except ContainerCreateError:
            # Nothing has an id yet; remove by name in case the runtime
            # materialized part of it.
            await self._cleanup.remove(self.spec.name)
            raise

        self.container_id = container_id
        self.state = ContainerState.CREATED
        self._log = self._log.bind(container_id=container_id[:12])
        self._log.info("Container created")
        return container_id

    async def start(self) -> None:
        """Start the created container.

        Raises:
            ContainerStartError: The runtime refused to start the container
        """
        self._require_state(ContainerState.CREATED, "start")
        try:
            await run_in_executor(self._client.start_container, self.container_id)
        except ContainerStartError:
            await self._remove()
            raise
        self.state = ContainerState.RUNNING
        self._log.info("Container started")

    def events(self) -> EventStream:
        """Return the live event sequence of the running container."""
        self._require_state(ContainerState.RUNNING, "events")
        if self._events is not None:
            raise InvalidStateError(
                "events() may only be called once per container",
                container_id=self.container_id,
            )
        multiplexer = EventMultiplexer(
            self._client,
            self._cleanup,
            self.container_id,
            self.scope,
            stop_timeout=self._config.stop_timeout,
            drain_timeout=self._config.log_drain_timeout,
            on_terminated=self._on_terminated,
        )
        self._events = multiplexer.start()
        return self._events

    async def close(self) -> None:
        """Make sure the container is gone. Safe to call more than once."""
        if self._events is not None and not self._events.closed:
            await self._events.aclose()

        if self.state in (ContainerState.UNRESOLVED, ContainerState.REMOVED):
            return
        if self.state == ContainerState.RUNTIME_FAULTED:
            # The runtime already considers the container gone
            self.state = ContainerState.REMOVED
            return
        await self._remove()

    async def __aenter__(self) -> "ContainerHandle":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()

    async def _resolve_image(self) -> None:
        image = self.spec.image
        matches = await run_in_executor(
            self._client.search_image, image, self._config.image_search_limit
        )
        if not matches:
            if self._config.allow_local_images and await run_in_executor(
                self._client.image_exists_locally, image
            ):
                self._log.info("Image not found in registry, using local image")
                return
            self._log.warning("Image not found")
            raise ImageNotFoundError(image)

        if not self._config.pull_image:
            return

        self._log.info("Pulling image")
        await run_in_executor(self._pull, image)
        self._log.info("Image pulled")

    def _pull(self, image: str) -> None:
        for progress in self._client.pull_image(image):
            self._log.debug(
                "Image pull progress",
                status=progress.get("status"),
                layer=progress.get("id"),
                progress=progress.get("progress"),
            )

    async def _remove(self) -> None:
        await self._cleanup.remove(self.container_id)
        self.state = ContainerState.REMOVED

    def _on_terminated(self, reason: TerminationReason) -> None:
        self.outcome = reason
        self.state = ContainerState.from_reason(reason)
        if self._cleanup.is_removal_requested(self.container_id):
            self.state = ContainerState.REMOVED

    def _require_state(self, expected: ContainerState, operation: str) -> None:
        if self.state != expected:
            raise InvalidStateError(
                f"cannot {operation}: container is {self.state.value}, "
                f"expected {expected.value}",
                container_id=self.container_id,
            )
