"""Exception hierarchy for the migration pipeline.

Per-item errors (everything except ReportSinkError, InputFormatError and
ConfigError) are caught by MigrationJob and turned into a FAILED outcome.
"""
from enum import Enum
from typing import Any


class FaultKind(str, Enum):
    """Structured classification of object-store faults."""
    INCOMPLETE_STREAM = "incomplete_stream"
    NOT_FOUND = "not_found"
    ACCESS_DENIED = "access_denied"
    THROTTLED = "throttled"
    OTHER = "other"


class MigrationError(Exception):
    """Base exception for all migration operations."""

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        super().__init__(message)
        self.details = details or {}


class ObjectStoreFault(MigrationError):
    """A classified failure raised by an ObjectStore implementation."""

    def __init__(self, message: str, kind: FaultKind = FaultKind.OTHER, details: dict[str, Any] | None = None):
        super().__init__(message, details)
        self.kind = kind

    @property
    def is_transient_stream_fault(self) -> bool:
        return self.kind is FaultKind.INCOMPLETE_STREAM


class DownloadError(MigrationError):
    def __init__(self, message: str, source_path: str, details: dict[str, Any] | None = None):
        super().__init__(message, details)
        self.source_path = source_path


class RetryExhaustedError(DownloadError):
    """The source stream kept ending early until the attempt bound was reached."""

    def __init__(self, source_path: str, attempts: int):
        super().__init__(
            f"Stream content length mismatch on every attempt ({attempts}) for: {source_path}",
            source_path,
            {"attempts": attempts},
        )
        self.attempts = attempts


class MetadataError(MigrationError):
    def __init__(self, message: str, source_path: str, details: dict[str, Any] | None = None):
        super().__init__(message, details)
        self.source_path = source_path


class HashError(MigrationError):
    def __init__(self, message: str, source_path: str, details: dict[str, Any] | None = None):
        super().__init__(message, details)
        self.source_path = source_path


class UploadError(MigrationError):
    def __init__(self, message: str, source_path: str, destination_key: str, details: dict[str, Any] | None = None):
        super().__init__(message, details)
        self.source_path = source_path
        self.destination_key = destination_key


class ReportSinkError(MigrationError):
    """The report cannot be opened or written. Fatal for the batch."""


class InputFormatError(MigrationError):
    def __init__(self, message: str, line_number: int | None = None):
        super().__init__(message, {"line_number": line_number})
        self.line_number = line_number


class ConfigError(MigrationError):
    pass
