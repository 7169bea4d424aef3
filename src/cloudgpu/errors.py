"""Deterministic error model and exit code contract."""

from __future__ import annotations

from dataclasses import dataclass
from enum import IntEnum


class ExitCode(IntEnum):
    SUCCESS = 0
    COMMAND_FAILED = 1
    INVALID_ARGS = 2
    CONFIG_ERROR = 3
    RUNTIME_ERROR = 4
    AUTH_ERROR = 5
    ACQUISITION_ERROR = 6
    TRANSPORT_ERROR = 7
    VALIDATION_ERROR = 8


@dataclass
class CloudGpuError(Exception):
    message: str
    code: ExitCode = ExitCode.RUNTIME_ERROR
    hint: str = ""

    def __str__(self) -> str:
        if self.hint:
            return f"{self.message} Hint: {self.hint}"
        return self.message


class AuthError(CloudGpuError):
    """The token provider could not supply a usable credential."""

    def __init__(self, message: str, *, hint: str = "") -> None:
        super().__init__(message, code=ExitCode.AUTH_ERROR, hint=hint)


class AcquisitionError(CloudGpuError):
    """No connectable runtime could be obtained."""

    def __init__(self, message: str, *, hint: str = "") -> None:
        super().__init__(message, code=ExitCode.ACQUISITION_ERROR, hint=hint)


class RuntimeUnavailable(AcquisitionError):
    pass


class RuntimeTimeout(AcquisitionError):
    pass


class TransportError(CloudGpuError):
    """HTTP or socket failure; fatal for the current channel."""

    def __init__(self, message: str, *, hint: str = "") -> None:
        super().__init__(message, code=ExitCode.TRANSPORT_ERROR, hint=hint)


class ProtocolError(CloudGpuError):
    """A terminal frame could not be decoded."""

    def __init__(self, message: str, *, hint: str = "") -> None:
        super().__init__(message, code=ExitCode.RUNTIME_ERROR, hint=hint)


class EmptyCommandError(CloudGpuError):
    def __init__(self, message: str = "Cannot run an empty command", *, hint: str = "") -> None:
        super().__init__(
            message,
            code=ExitCode.VALIDATION_ERROR,
            hint=hint or "Pass the command to run after 'run'.",
        )


def user_facing_error(message: str, *, hint: str = "") -> str:
    if hint:
        return f"Error: {message}. Next step: {hint}"
    return f"Error: {message}."
