"""Exception classes for the streaming storage client."""

from __future__ import annotations

from enum import Enum


class StatusCode(str, Enum):
    """Canonical RPC status codes."""

    OK = "OK"
    CANCELLED = "CANCELLED"
    UNKNOWN = "UNKNOWN"
    INVALID_ARGUMENT = "INVALID_ARGUMENT"
    DEADLINE_EXCEEDED = "DEADLINE_EXCEEDED"
    NOT_FOUND = "NOT_FOUND"
    ALREADY_EXISTS = "ALREADY_EXISTS"
    PERMISSION_DENIED = "PERMISSION_DENIED"
    RESOURCE_EXHAUSTED = "RESOURCE_EXHAUSTED"
    FAILED_PRECONDITION = "FAILED_PRECONDITION"
    ABORTED = "ABORTED"
    OUT_OF_RANGE = "OUT_OF_RANGE"
    UNIMPLEMENTED = "UNIMPLEMENTED"
    INTERNAL = "INTERNAL"
    UNAVAILABLE = "UNAVAILABLE"
    DATA_LOSS = "DATA_LOSS"
    UNAUTHENTICATED = "UNAUTHENTICATED"


class StorageError(Exception):
    """Base error for storage operations."""

    default_code = StatusCode.UNKNOWN

    def __init__(
        self,
        message: str,
        code: StatusCode | None = None,
        operation: str | None = None,
    ) -> None:
        """Initialize StorageError.

        Args:
            message: Human readable description of the failure.
            code: Status code; defaults to the class' ``default_code``.
            operation: Name of the operation that failed, if known.
        """
        super().__init__(message)
        self.message = message
        self.code = code or self.default_code
        self.operation = operation

    def annotate(self, operation: str) -> StorageError:
        """Record the failing operation and return the same error."""
        if self.operation is None:
            self.operation = operation
        return self

    def __str__(self) -> str:
        prefix = f"{self.operation}: " if self.operation else ""
        return f"{prefix}[{self.code.value}] {self.message}"


class InvalidArgumentError(StorageError):
    """Raised when a request is malformed. Detected locally, never sent."""

    default_code = StatusCode.INVALID_ARGUMENT


class OutOfRangeError(InvalidArgumentError):
    """Raised when an offset or read length is outside the valid range."""

    default_code = StatusCode.OUT_OF_RANGE


class UnimplementedError(StorageError):
    """Raised for operations this transport binding does not support."""

    default_code = StatusCode.UNIMPLEMENTED


class RpcError(StorageError):
    """Raised when a unary or streaming call ends with a non-OK status."""


class ResumptionInconsistencyError(StorageError):
    """Raised when the server reports a committed size lower than before."""

    default_code = StatusCode.DATA_LOSS


class ChecksumMismatchError(StorageError):
    """Raised when received data does not match its checksum."""

    default_code = StatusCode.DATA_LOSS


class SessionClosedError(StorageError):
    """Raised when a resumable session cannot accept the requested call."""

    default_code = StatusCode.FAILED_PRECONDITION
