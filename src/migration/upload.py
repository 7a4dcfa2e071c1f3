from __future__ import annotations

import asyncio
import logging
from typing import Any

from core.settings import DESTINATION_PREFIX
from migration.domain import ObjectMetadata, ReportEntry, StagingHandle, UploadResult, destination_key
from migration.errors import ObjectStoreFault, UploadError
from migration.object_store import ObjectStore, ProgressCallback
from migration.report import ReportSink

logger = logging.getLogger(__name__)


class Uploader:
    """
    Streams a staged object to its content-addressed key and records provenance.

    The report line is appended only after the store confirmed the upload.
    """

    def __init__(
        self,
        store: ObjectStore,
        report: ReportSink,
        *,
        destination_prefix: str = DESTINATION_PREFIX,
        progress: ProgressCallback | None = None,
    ):
        self.store = store
        self.report = report
        self.destination_prefix = destination_prefix
        self.progress = progress

    async def rename_and_upload(
        self,
        destination_bucket: str,
        metadata: ObjectMetadata,
        source_path: str,
        staging: StagingHandle,
    ) -> UploadResult:
        key = destination_key(metadata.content_hash, self.destination_prefix)
        logger.info("Uploading %s -> s3://%s/%s", source_path, destination_bucket, key)

        try:
            confirmation = await asyncio.to_thread(self._put, destination_bucket, key, metadata, staging)
        except ObjectStoreFault as e:
            raise UploadError(
                f"Upload failed for {source_path} -> {key}: {e}",
                source_path,
                key,
                {"kind": e.kind.value, **e.details},
            ) from e
        except OSError as e:
            raise UploadError(
                f"Cannot read staging file {staging.local_path} for {source_path}: {e}",
                source_path,
                key,
                {"local_path": str(staging.local_path)},
            ) from e

        await asyncio.to_thread(self.report.append, ReportEntry(metadata.content_hash, source_path))
        logger.info("Upload of the binary is a success: %s", key)

        return UploadResult(destination_key=key, etag=confirmation.get("ETag"), raw=confirmation)

    def _put(self, bucket: str, key: str, metadata: ObjectMetadata, staging: StagingHandle) -> dict[str, Any]:
        with open(staging.local_path, "rb") as body:
            return self.store.put_object_stream(
                bucket,
                key,
                metadata.content_type,
                body,
                progress=self._on_progress(key),
            )

    def _on_progress(self, key: str) -> ProgressCallback:
        def observe(loaded: int) -> None:
            logger.debug("Upload progress %s: %s bytes", key, loaded)
            if self.progress is None:
                return
            try:
                self.progress(loaded)
            except Exception:
                logger.warning("Progress observer failed for %s", key, exc_info=True)

        return observe
