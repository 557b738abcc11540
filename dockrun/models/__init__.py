"""Data models for dockrun."""

from .container import ContainerSpec, ContainerState, generate_container_name
from .events import (
    Event,
    LogLine,
    Terminated,
    TerminationReason,
    Exited,
    KilledManually,
    CommandNotStartable,
    RuntimeFault,
    CancelledByCaller,
    classify_exit_code,
)
from .errors import (
    ErrorType,
    ContainerRunnerException,
    ImageNotFoundError,
    ImageTransferError,
    ContainerCreateError,
    ContainerStartError,
    LogStreamError,
    RuntimeReportedError,
    StopError,
    RemovalError,
    InvalidStateError,
)

__all__ = [
    # Container models
    "ContainerSpec",
    "ContainerState",
    "generate_container_name",
    # Event models
    "Event",
    "LogLine",
    "Terminated",
    "TerminationReason",
    "Exited",
    "KilledManually",
    "CommandNotStartable",
    "RuntimeFault",
    "CancelledByCaller",
    "classify_exit_code",
    # Errors
    "ErrorType",
    "ContainerRunnerException",
    "ImageNotFoundError",
    "ImageTransferError",
    "ContainerCreateError",
    "ContainerStartError",
    "LogStreamError",
    "RuntimeReportedError",
    "StopError",
    "RemovalError",
    "InvalidStateError",
]
