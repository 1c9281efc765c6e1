"""
Typed error classes for chainbox.

This module provides the error hierarchy raised while bringing up a node:
- ChainboxError: Base exception for all chainbox errors
- EngineCallError: A container engine call failed
- UnknownHealthStatusError: The engine reported a health status we do not know
- UnhealthyContainerError / ContainerExitedError: The node container is dead
- ReadinessTimeoutError: The node never answered its readiness probe
- ConnectorStartError: The connector could not be started against the node
- InvariantViolationError: Something that can never happen, happened
- EnvironmentClosedError: An environment was used after shutdown
- ConfigurationError: Invalid chain configuration or settings
"""

from typing import Any, Optional


class ChainboxError(Exception):
    """Base exception class for all chainbox errors.

    Attributes:
        message: Human-readable error message
        code: Optional error code for programmatic handling
        details: Optional dictionary with additional error context
    """

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        details: Optional[dict[str, Any]] = None,
    ):
        self.message = message
        self.code = code
        self.details = details or {}
        super().__init__(message)

    def to_dict(self) -> dict[str, Any]:
        """Convert error to a dictionary for serialization."""
        result: dict[str, Any] = {
            "type": self.__class__.__name__,
            "message": self.message,
        }
        if self.code:
            result["code"] = self.code
        if self.details:
            result["details"] = self.details
        return result

    def __str__(self) -> str:
        if self.code:
            return f"[{self.code}] {self.message}"
        return self.message


class EngineCallError(ChainboxError):
    """Raised when a container engine call fails.

    The underlying docker error is kept verbatim in ``cause`` and chained
    as ``__cause__`` by the gateway.
    """

    def __init__(
        self,
        message: str,
        operation: Optional[str] = None,
        cause: Optional[BaseException] = None,
        not_found: bool = False,
        details: Optional[dict[str, Any]] = None,
    ):
        self.operation = operation
        self.cause = cause
        self.not_found = not_found
        details = details or {}
        if operation:
            details["operation"] = operation
        if not_found:
            details["not_found"] = True
        super().__init__(message, code="ENGINE_CALL_FAILED", details=details)


class UnknownHealthStatusError(ChainboxError):
    """Raised when the engine reports a health status outside the known set."""

    def __init__(self, status: str, details: Optional[dict[str, Any]] = None):
        self.status = status
        details = details or {}
        details["status"] = status
        super().__init__(
            f"unknown health status {status!r}",
            code="UNKNOWN_HEALTH_STATUS",
            details=details,
        )


class UnhealthyContainerError(ChainboxError):
    """Raised when a node container reports itself unhealthy."""

    def __init__(
        self,
        message: str,
        container: Optional[str] = None,
        code: Optional[str] = None,
        details: Optional[dict[str, Any]] = None,
    ):
        self.container = container
        details = details or {}
        if container:
            details["container"] = container
        super().__init__(
            message, code=code or "UNHEALTHY_CONTAINER", details=details
        )


class ContainerExitedError(UnhealthyContainerError):
    """Raised when the readiness probe finds the container dead mid-probe."""

    def __init__(
        self,
        message: str,
        container: Optional[str] = None,
        details: Optional[dict[str, Any]] = None,
    ):
        super().__init__(
            message, container=container, code="CONTAINER_EXITED", details=details
        )


class ReadinessTimeoutError(ChainboxError):
    """Raised when the readiness probe exhausts its attempt budget."""

    def __init__(
        self,
        message: str,
        url: Optional[str] = None,
        attempts: Optional[int] = None,
        details: Optional[dict[str, Any]] = None,
    ):
        self.url = url
        self.attempts = attempts
        details = details or {}
        if url:
            details["url"] = url
        if attempts is not None:
            details["attempts"] = attempts
        super().__init__(message, code="READINESS_TIMEOUT", details=details)


class ConnectorStartError(ChainboxError):
    """Raised when the connector factory keeps failing.

    ``last_error`` is the error of the final attempt, unchanged.
    """

    def __init__(
        self,
        message: str,
        last_error: Optional[BaseException] = None,
        attempts: Optional[int] = None,
        details: Optional[dict[str, Any]] = None,
    ):
        self.last_error = last_error
        self.attempts = attempts
        details = details or {}
        if attempts is not None:
            details["attempts"] = attempts
        if last_error is not None:
            details["last_error"] = str(last_error)
        super().__init__(message, code="CONNECTOR_START_FAILED", details=details)


class InvariantViolationError(ChainboxError):
    """Raised when an impossible state is reached."""

    def __init__(self, message: str, details: Optional[dict[str, Any]] = None):
        super().__init__(message, code="INVARIANT_VIOLATION", details=details)


class EnvironmentClosedError(ChainboxError):
    """Raised when an environment is used after it was shut down."""

    def __init__(self, message: str, container: Optional[str] = None):
        details = {"container": container} if container else None
        super().__init__(message, code="ENVIRONMENT_CLOSED", details=details)


class ConfigurationError(ChainboxError):
    """Configuration-related errors.

    Raised when:
    - A node URI cannot be parsed
    - A port is outside the 16-bit range
    """

    def __init__(
        self,
        message: str,
        field: Optional[str] = None,
        value: Optional[Any] = None,
        details: Optional[dict[str, Any]] = None,
    ):
        self.field = field
        self.value = value
        details = details or {}
        if field:
            details["field"] = field
        if value is not None:
            details["value"] = value
        super().__init__(message, code="CONFIGURATION_ERROR", details=details)


__all__ = [
    "ChainboxError",
    "EngineCallError",
    "UnknownHealthStatusError",
    "UnhealthyContainerError",
    "ContainerExitedError",
    "ReadinessTimeoutError",
    "ConnectorStartError",
    "InvariantViolationError",
    "EnvironmentClosedError",
    "ConfigurationError",
]
