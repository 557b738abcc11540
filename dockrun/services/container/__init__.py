"""Container management services.

This package provides Docker container management functionality split into:
- client.py: Docker client factory and runtime client adapter
- handle.py: Container lifecycle management
- multiplexer.py: Log/termination event multiplexing
- cleanup.py: Exactly-once forced removal
- utils.py: Shared utilities for container operations
"""

from .client import DockerClientFactory, RuntimeClient, WaitResult
from .cleanup import CleanupCoordinator
from .handle import ContainerHandle
from .multiplexer import EventMultiplexer, EventStream, LogScanner
from .utils import iter_lines, run_in_daemon_thread, run_in_executor

__all__ = [
    "DockerClientFactory",
    "RuntimeClient",
    "WaitResult",
    "CleanupCoordinator",
    "ContainerHandle",
    "EventMultiplexer",
    "EventStream",
    "LogScanner",
    "iter_lines",
    "run_in_daemon_thread",
    "run_in_executor",
]
