import csv
import logging
import os
import threading
from pathlib import Path
from typing import TextIO

from migration.domain import ReportEntry
from migration.errors import ReportSinkError

logger = logging.getLogger(__name__)


class ReportSink:
    """
    Append-only migration report: one "<content_hash>,<source_path>" line per
    confirmed upload.

    The report is a LEDGER, not a queue:
      - opened once per batch in append mode
      - written only after the destination store confirmed the object
      - lines are never rewritten or removed

    Paths containing a comma, quote or newline are quoted (csv minimal quoting);
    all other lines are exactly "<hash>,<path>\\n".
    """

    def __init__(self, path: Path):
        self.path = path
        self._handle: TextIO | None = None
        self._writer = None
        self._lock = threading.Lock()
        self.lines_written = 0

    def __enter__(self) -> "ReportSink":
        if self._handle is not None:
            raise RuntimeError("Report sink already open")
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            handle = open(self.path, "a", encoding="utf-8", newline="")
        except OSError as e:
            raise ReportSinkError(f"Cannot open migration report {self.path}: {e}", {"path": str(self.path)}) from e

        self._handle = handle
        self._writer = csv.writer(handle, lineterminator="\n", quoting=csv.QUOTE_MINIMAL)
        logger.debug("Report sink opened: %s", self.path)
        return self

    def __exit__(self, exc_type, exc_value, tb) -> None:
        if self._handle is None:
            return
        try:
            self._handle.close()
        finally:
            self._handle = None
            self._writer = None

    def append(self, entry: ReportEntry) -> None:
        if self._handle is None or self._writer is None:
            raise ReportSinkError("Report sink is not open; use it as a context manager")

        with self._lock:
            try:
                self._writer.writerow(entry.as_row())
                self._handle.flush()
                os.fsync(self._handle.fileno())
            except OSError as e:
                raise ReportSinkError(
                    f"Failed to append report entry for {entry.source_path}: {e}",
                    {"path": str(self.path), "content_hash": entry.content_hash},
                ) from e
            self.lines_written += 1


def read_report(path: Path) -> list[ReportEntry]:
    """Parse an existing report back into entries."""
    if not path.exists():
        return []
    with open(path, "r", encoding="utf-8", newline="") as f:
        return [ReportEntry(content_hash=row[0], source_path=row[1]) for row in csv.reader(f) if row]
