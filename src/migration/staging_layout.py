from __future__ import annotations

from dataclasses import dataclass
import hashlib
import logging
import shutil
from pathlib import Path
from typing import Iterable

from core.settings import STAGING_FILE_NAME_MAX_BYTES, STAGING_FILE_SUFFIX
from migration.domain import StagingHandle
from migration.sanitize import sanitize_path

logger = logging.getLogger(__name__)

RUN_DIR_PREFIX = "run_"
_DIGEST_LENGTH = 12


@dataclass(frozen=True)
class StagingLayout:
    """Filesystem layout for staging files.

    Layout:
      staging_root/
        <run_id>/
          <sanitized_name>.tmp -> bytes of the one object currently in flight

    File names are bounded in bytes, not characters: a sanitized name that
    would not fit is cut on a character boundary and suffixed with a digest
    of the source path.
    """

    staging_root: Path
    run_id: str
    suffix: str = STAGING_FILE_SUFFIX
    max_name_bytes: int = STAGING_FILE_NAME_MAX_BYTES

    # ----------------------------
    # Paths
    # ----------------------------
    @property
    def run_root(self) -> Path:
        return self.staging_root / self.run_id

    def get_staging_path_for(self, sanitized_name: str, source_path: str | None = None) -> Path:
        return self.run_root / self.get_staging_file_name(sanitized_name, source_path)

    def get_staging_file_name(self, sanitized_name: str, source_path: str | None = None) -> str:
        file_name = f"{sanitized_name}{self.suffix}"
        if len(file_name.encode("utf-8")) <= self.max_name_bytes:
            return file_name

        digest = hashlib.md5((source_path or sanitized_name).encode("utf-8")).hexdigest()[:_DIGEST_LENGTH]
        tail = f"_{digest}{self.suffix}"
        budget = self.max_name_bytes - len(tail.encode("utf-8"))
        head = sanitized_name.encode("utf-8")[:budget].decode("utf-8", errors="ignore")
        return f"{head}{tail}"

    def handle_for(self, source_path: str) -> StagingHandle:
        sanitized_name = sanitize_path(source_path)
        return StagingHandle(
            sanitized_name=sanitized_name,
            local_path=self.get_staging_path_for(sanitized_name, source_path),
        )

    # ----------------------------
    # IO helpers
    # ----------------------------
    def ensure_run_directory(self) -> None:
        self.run_root.mkdir(parents=True, exist_ok=True)

    def delete_staging_file(self, handle: StagingHandle) -> bool:
        """
        Remove the staging file if present. Returns True when something was deleted.
        Failures are logged, never raised: cleanup must not replace the fault
        that led to it.
        """
        try:
            handle.local_path.unlink()
        except FileNotFoundError:
            return False
        except OSError as e:
            logger.error("Failed to delete staging file %s: %s", handle.local_path, e)
            return False
        logger.debug("Deleted staging file %s", handle.local_path)
        return True

    # ----------------------------
    # Cleanup / GC
    # ----------------------------
    def iter_staging_files(self) -> Iterable[Path]:
        if not self.run_root.exists():
            return []
        return [p for p in self.run_root.iterdir() if p.is_file() and p.name.endswith(self.suffix)]

    def iter_stale_run_dirs(self) -> Iterable[Path]:
        if not self.staging_root.exists():
            return []
        return [
            p for p in self.staging_root.iterdir()
            if p.is_dir() and p.name.startswith(RUN_DIR_PREFIX) and p.name != self.run_id
        ]

    def cleanup_stale_runs(self) -> int:
        """
        Wipe run directories left behind by earlier runs that crashed or were killed.
        Only one batch uses a staging root at a time, so any other run_* directory
        is abandoned. Returns number of directories removed.
        """
        removed = 0
        for run_dir in list(self.iter_stale_run_dirs()):
            try:
                shutil.rmtree(run_dir)
                removed += 1
            except OSError as e:
                logger.warning("Failed to wipe stale staging directory %s: %s", run_dir, e)

        if removed:
            logger.warning("Removed %s stale staging run director(ies) from %s", removed, self.staging_root)
        return removed

    def cleanup_run(self) -> int:
        """
        Delete leftover staging files of this run, then the run directory if empty.
        Returns number of files removed.
        """
        removed = 0
        for path in list(self.iter_staging_files()):
            try:
                path.unlink()
                removed += 1
            except OSError as e:
                logger.warning("Failed to delete orphaned staging file %s: %s", path, e)

        if removed:
            logger.warning("Removed %s orphaned staging file(s) from %s", removed, self.run_root)

        try:
            if self.run_root.exists() and not any(self.run_root.iterdir()):
                self.run_root.rmdir()
        except OSError:
            pass
        return removed
