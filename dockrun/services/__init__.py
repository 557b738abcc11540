"""Services for dockrun."""

from .container import (
    CleanupCoordinator,
    ContainerHandle,
    DockerClientFactory,
    EventStream,
    RuntimeClient,
)

__all__ = [
    "CleanupCoordinator",
    "ContainerHandle",
    "DockerClientFactory",
    "EventStream",
    "RuntimeClient",
]
