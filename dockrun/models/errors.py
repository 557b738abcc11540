"""Error models and exception classes for dockrun."""

from enum import Enum
from typing import Any, Dict, Optional


class ErrorType(str, Enum):
    """Error type enumeration."""

    IMAGE_NOT_FOUND = "image_not_found"
    IMAGE_TRANSFER_FAILED = "image_transfer_failed"
    CONTAINER_CREATE_FAILED = "container_create_failed"
    CONTAINER_START_FAILED = "container_start_failed"
    LOG_STREAM_FAILED = "log_stream_failed"
    RUNTIME_REPORTED_ERROR = "runtime_reported_error"
    STOP_FAILED = "stop_failed"
    REMOVAL_FAILED = "removal_failed"
    INVALID_STATE = "invalid_state"


class ContainerRunnerException(Exception):
    """Base exception for dockrun."""

    def __init__(
        self,
        message: str,
        error_type: ErrorType,
        container_id: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        self.message = message
        self.error_type = error_type
        self.container_id = container_id
        self.details = details or {}
        super().__init__(message)

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to a JSON-serializable dict."""
        data = {"error": self.message, "error_type": self.error_type.value}
        if self.container_id:
            data["container_id"] = self.container_id
        if self.details:
            data["details"] = self.details
        return data


class ImageNotFoundError(ContainerRunnerException):
    """Image reference did not resolve to any image."""

    def __init__(self, image: str, **kwargs):
        super().__init__(
            message=f"image with name: {image} not found",
            error_type=ErrorType.IMAGE_NOT_FOUND,
            details={"image": image},
            **kwargs,
        )


class ImageTransferError(ContainerRunnerException):
    """Image search or pull failed."""

    def __init__(self, image: str, message: str = None, **kwargs):
        super().__init__(
            message=message or f"failed to transfer image: {image}",
            error_type=ErrorType.IMAGE_TRANSFER_FAILED,
            details={"image": image},
            **kwargs,
        )


class ContainerCreateError(ContainerRunnerException):
    """Container could not be materialized."""

    def __init__(self, message: str, **kwargs):
        super().__init__(
            message=message, error_type=ErrorType.CONTAINER_CREATE_FAILED, **kwargs
        )


class ContainerStartError(ContainerRunnerException):
    """Container could not be started."""

    def __init__(self, message: str, **kwargs):
        super().__init__(
            message=message, error_type=ErrorType.CONTAINER_START_FAILED, **kwargs
        )


class LogStreamError(ContainerRunnerException):
    """Log stream could not be opened or read."""

    def __init__(self, message: str, **kwargs):
        super().__init__(
            message=message, error_type=ErrorType.LOG_STREAM_FAILED, **kwargs
        )


class RuntimeReportedError(ContainerRunnerException):
    """The runtime reported an error instead of a clean exit."""

    def __init__(self, message: str, **kwargs):
        super().__init__(
            message=message, error_type=ErrorType.RUNTIME_REPORTED_ERROR, **kwargs
        )


class StopError(ContainerRunnerException):
    """Stop request failed."""

    def __init__(self, message: str, **kwargs):
        super().__init__(message=message, error_type=ErrorType.STOP_FAILED, **kwargs)


class RemovalError(ContainerRunnerException):
    """Forced removal failed. Logged by the cleanup path, never escalated."""

    def __init__(self, message: str, **kwargs):
        super().__init__(
            message=message, error_type=ErrorType.REMOVAL_FAILED, **kwargs
        )


class InvalidStateError(ContainerRunnerException):
    """Lifecycle operation called in the wrong state."""

    def __init__(self, message: str, **kwargs):
        super().__init__(
            message=message, error_type=ErrorType.INVALID_STATE, **kwargs
        )
