from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Literal

from core.settings import DESTINATION_PREFIX


@dataclass(frozen=True)
class InputRecord:
    """One line of the input listing. Input order is processing order."""
    declared_size: int
    source_path: str
    line_number: int | None = None


@dataclass(frozen=True)
class StagingHandle:
    """
    Local staging file for exactly one in-flight object.

    Owned by the job that created it; the job deletes it once the upload
    succeeds or the item is abandoned.
    """
    sanitized_name: str
    local_path: Path


@dataclass(frozen=True)
class ObjectMetadata:
    """Source headers combined with the digest of the staged bytes."""
    content_type: str
    declared_size: int
    content_hash: str


@dataclass(frozen=True)
class ReportEntry:
    """Provenance line: content hash -> original source path."""
    content_hash: str
    source_path: str

    def as_row(self) -> tuple[str, str]:
        return (self.content_hash, self.source_path)


@dataclass(frozen=True)
class UploadResult:
    """Confirmation returned by the destination store."""
    destination_key: str
    etag: str | None = None
    raw: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class RunContext:
    """Per-run context."""
    run_id: str


MigrationStatus = Literal["MIGRATED", "FAILED"]
MigrationStage = Literal["download", "metadata", "upload"]


@dataclass(frozen=True)
class MigrationOutcome:
    """Terminal result for one InputRecord."""
    record: InputRecord
    status: MigrationStatus
    content_hash: str | None = None
    destination_key: str | None = None
    failed_stage: MigrationStage | None = None
    error: str | None = None

    @property
    def succeeded(self) -> bool:
        return self.status == "MIGRATED"


@dataclass(frozen=True)
class BatchSummary:
    outcomes: tuple[MigrationOutcome, ...]

    @property
    def attempted(self) -> int:
        return len(self.outcomes)

    @property
    def migrated(self) -> int:
        return sum(1 for o in self.outcomes if o.succeeded)

    @property
    def failed(self) -> int:
        return self.attempted - self.migrated

    @property
    def failed_source_paths(self) -> list[str]:
        return [o.record.source_path for o in self.outcomes if not o.succeeded]


def destination_key(content_hash: str, prefix: str = DESTINATION_PREFIX) -> str:
    """Content-addressed key: depends on the digest only, never on the source path."""
    return f"{prefix}{content_hash}"
