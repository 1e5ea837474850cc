"""Error taxonomy shared by the detection, catalog and merge pipeline."""

from __future__ import annotations


class InstructGenError(RuntimeError):
    """Base class for all instructgen failures."""


class ConfigError(InstructGenError):
    """Raised when the configuration file cannot be parsed."""


class NotFoundError(InstructGenError):
    """A project path, technology or document does not exist."""


class TransientFetchError(InstructGenError):
    """The remote catalog could not be reached or returned an unusable payload."""


class MalformedInputError(InstructGenError):
    """A local guideline file is unreadable, unparseable or misnamed."""

    def __init__(self, path: object, reason: str) -> None:
        super().__init__(f"{path}: {reason}")
        self.path = path
        self.reason = reason


class InvalidStateError(InstructGenError):
    """An operation was invoked without the inputs it needs."""


class OperationCancelledError(InstructGenError):
    """A long-running operation observed its cancellation signal."""


__all__ = [
    "ConfigError",
    "InstructGenError",
    "InvalidStateError",
    "MalformedInputError",
    "NotFoundError",
    "OperationCancelledError",
    "TransientFetchError",
]
