"""Event models produced by the log/event multiplexer.

A running container yields zero or more ``LogLine`` events followed by
exactly one ``Terminated`` event carrying a ``TerminationReason``.
"""

from dataclasses import dataclass
from typing import Any, Dict, Optional, Union

# Exit status reported when the process received SIGKILL (128 + 9)
EXIT_CODE_KILLED = 137
# Exit status reported by the shell when the command cannot be executed
EXIT_CODE_NOT_STARTABLE = 127


@dataclass(frozen=True)
class Exited:
    """Process ended on its own."""

    code: int
    kind = "exited"

    def describe(self, container_id: Optional[str] = None) -> str:
        return f"container id: {container_id} stopped with {self.code} exit code"


@dataclass(frozen=True)
class KilledManually:
    """Process ended via a forced termination signal."""

    kind = "killed_manually"

    @property
    def code(self) -> int:
        return EXIT_CODE_KILLED

    def describe(self, container_id: Optional[str] = None) -> str:
        return f"container id: {container_id} stopped manually"


@dataclass(frozen=True)
class CommandNotStartable:
    """The command could not be executed inside the container."""

    kind = "command_not_startable"

    @property
    def code(self) -> int:
        return EXIT_CODE_NOT_STARTABLE

    def describe(self, container_id: Optional[str] = None) -> str:
        return f"cannot start: {container_id}"


@dataclass(frozen=True)
class RuntimeFault:
    """The runtime reported an error instead of a clean exit."""

    message: str
    kind = "runtime_error"

    def describe(self, container_id: Optional[str] = None) -> str:
        return f"container id: {container_id} runtime error: {self.message}"


@dataclass(frozen=True)
class CancelledByCaller:
    """The owning scope was cancelled and the container stopped and removed."""

    kind = "cancelled"

    def describe(self, container_id: Optional[str] = None) -> str:
        return f"container id: {container_id} cancelled, stopped and removed"


TerminationReason = Union[
    Exited, KilledManually, CommandNotStartable, RuntimeFault, CancelledByCaller
]


@dataclass(frozen=True)
class LogLine:
    """One line of combined stdout/stderr output."""

    text: str

    def to_dict(self) -> Dict[str, Any]:
        return {"event": "log", "text": self.text}


@dataclass(frozen=True)
class Terminated:
    """The final event of a container's event sequence."""

    reason: TerminationReason

    def to_dict(self, container_id: Optional[str] = None) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "event": "terminated",
            "reason": self.reason.kind,
            "message": self.reason.describe(container_id),
        }
        if isinstance(self.reason, (Exited, KilledManually, CommandNotStartable)):
            data["exit_code"] = self.reason.code
        return data


Event = Union[LogLine, Terminated]


def classify_exit_code(code: int) -> TerminationReason:
    """Map an observed status code to a termination reason."""
    if code == EXIT_CODE_KILLED:
        return KilledManually()
    if code == EXIT_CODE_NOT_STARTABLE:
        return CommandNotStartable()
    return Exited(code)
