"""Exactly-once forced removal of containers."""

import asyncio
from typing import Set

import structlog
from docker.errors import NotFound

from ...models.errors import RemovalError
from .client import RuntimeClient
from .utils import run_in_executor

logger = structlog.get_logger(__name__)


class CleanupCoordinator:
    """Force-removes containers, at most once per container reference.

    Several termination paths (exit, cancellation, failed create/start,
    ``ContainerHandle.close``) may ask for removal of the same container,
    possibly concurrently. Only the first request reaches the runtime; the
    rest are no-ops. Removal is best-effort: failures are logged, never
    raised.
    """

    def __init__(self, client: RuntimeClient):
        self._client = client
        self._lock = asyncio.Lock()
        self._requested: Set[str] = set()

    def is_removal_requested(self, container_ref: str) -> bool:
        return container_ref in self._requested

    async def remove(self, container_ref: str) -> bool:
        """Force-remove a container by id or name.

        Returns:
            True if this call issued the removal request, False if removal
            was already requested or the request failed.
        """
        async with self._lock:
            if container_ref in self._requested:
                logger.debug("Container removal already requested", container=container_ref)
                return False
            self._requested.add(container_ref)

        try:
            await run_in_executor(self._client.remove_container, container_ref, True)
        except RemovalError as e:
            if isinstance(e.__cause__, NotFound):
                logger.debug("Container already gone", container=container_ref)
                return False
            logger.warning(
                "Container removal failed",
                container=container_ref,
                error=e.message,
            )
            return False

        logger.info("Container removed", container=container_ref)
        return True
