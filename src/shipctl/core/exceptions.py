"""Custom exceptions for shipctl."""

from typing import Any


class ShipCtlError(Exception):
    """Base exception for all shipctl errors."""

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def __str__(self) -> str:
        if self.details:
            return f"{self.message} - {self.details}"
        return self.message


class ConfigError(ShipCtlError):
    """Configuration-related errors."""

    pass


class ValidationError(ShipCtlError):
    """Pre-flight validation produced fatal findings."""

    def __init__(
        self,
        message: str,
        errors: list[str] | None = None,
        details: dict[str, Any] | None = None,
    ):
        super().__init__(message, details)
        self.errors = errors or []


class CommandError(ShipCtlError):
    """External command failed."""

    def __init__(
        self,
        message: str,
        command: list[str] | None = None,
        returncode: int | None = None,
        stderr: str | None = None,
        details: dict[str, Any] | None = None,
    ):
        super().__init__(message, details)
        self.command = command or []
        self.returncode = returncode
        self.stderr = stderr


class CommandTimeoutError(CommandError):
    """External command exceeded its ceiling and was killed."""

    def __init__(
        self,
        message: str,
        command: list[str] | None = None,
        timeout_seconds: float | None = None,
    ):
        super().__init__(message, command=command)
        self.timeout_seconds = timeout_seconds


class PlatformError(CommandError):
    """Hosting platform CLI errors."""

    pass


class DeploymentError(ShipCtlError):
    """Deployment phase or batch errors."""

    def __init__(
        self,
        message: str,
        phase: str | None = None,
        component: str | None = None,
        details: dict[str, Any] | None = None,
    ):
        super().__init__(message, details)
        self.phase = phase
        self.component = component


class ReleaseError(ShipCtlError):
    """Release controller errors."""

    def __init__(
        self,
        message: str,
        stage: str | None = None,
        details: dict[str, Any] | None = None,
    ):
        super().__init__(message, details)
        self.stage = stage
