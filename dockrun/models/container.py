"""Container specification and lifecycle state models."""

import uuid
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Dict, Optional, Sequence, Tuple, Union

from .events import (
    CancelledByCaller,
    CommandNotStartable,
    Exited,
    KilledManually,
    RuntimeFault,
    TerminationReason,
)


class ContainerState(str, Enum):
    """Lifecycle states of a container handle."""

    UNRESOLVED = "unresolved"
    CREATED = "created"
    RUNNING = "running"
    EXITED = "exited"
    KILLED = "killed"
    COMMAND_FAILED = "command_failed"
    RUNTIME_FAULTED = "runtime_faulted"
    CANCELLED = "cancelled"
    REMOVED = "removed"

    @classmethod
    def from_reason(cls, reason: TerminationReason) -> "ContainerState":
        """State reached when the container terminates for ``reason``."""
        if isinstance(reason, KilledManually):
            return cls.KILLED
        if isinstance(reason, CommandNotStartable):
            return cls.COMMAND_FAILED
        if isinstance(reason, RuntimeFault):
            return cls.RUNTIME_FAULTED
        if isinstance(reason, CancelledByCaller):
            return cls.CANCELLED
        if isinstance(reason, Exited):
            return cls.EXITED
        raise TypeError(f"unknown termination reason: {reason!r}")


def generate_container_name(prefix: str = "dockrun") -> str:
    """Generate a unique, human-readable container name."""
    return f"{prefix}-{uuid.uuid4()}"


@dataclass(frozen=True)
class ContainerSpec:
    """What to run: image, command and the generated container name."""

    image: str
    command: Tuple[str, ...]
    name: str
    labels: Dict[str, str] = field(default_factory=dict)

    @classmethod
    def build(
        cls,
        image: str,
        command: Union[str, Sequence[str]],
        name_prefix: str = "dockrun",
        name: Optional[str] = None,
    ) -> "ContainerSpec":
        """Build a spec with a fresh name and management labels."""
        if not image:
            raise ValueError("image reference must not be empty")
        if isinstance(command, str):
            command = (command,)
        name = name or generate_container_name(name_prefix)
        labels = {
            "com.dockrun.managed": "true",
            "com.dockrun.name": name,
            "com.dockrun.created-at": datetime.utcnow().isoformat(),
        }
        return cls(image=image, command=tuple(command), name=name, labels=labels)
