from __future__ import annotations

import asyncio
import logging

from migration.domain import InputRecord, MigrationOutcome, MigrationStage, StagingHandle
from migration.download import Downloader
from migration.errors import MigrationError, ReportSinkError
from migration.metadata import MetadataFetcher
from migration.staging_layout import StagingLayout
from migration.upload import Uploader

logger = logging.getLogger(__name__)


class MigrationJob:
    """
    Moves one object: download -> metadata + hash -> upload + report -> cleanup.

    Each run owns its staging handle and attempt counter. Stage failures end up
    in the returned outcome; only a broken report sink escapes, since no further
    progress could be recorded.
    """

    def __init__(
        self,
        *,
        source_bucket: str,
        destination_bucket: str,
        layout: StagingLayout,
        downloader: Downloader,
        metadata_fetcher: MetadataFetcher,
        uploader: Uploader,
    ):
        self.source_bucket = source_bucket
        self.destination_bucket = destination_bucket
        self.layout = layout
        self.downloader = downloader
        self.metadata_fetcher = metadata_fetcher
        self.uploader = uploader

    async def run(self, record: InputRecord) -> MigrationOutcome:
        source_path = record.source_path
        # Known up front so cleanup also covers a download that died half-way.
        staging = self.layout.handle_for(source_path)
        stage: MigrationStage = "download"

        try:
            staging = await self.downloader.download(self.source_bucket, source_path)

            stage = "metadata"
            metadata = await self.metadata_fetcher.fetch_metadata(self.source_bucket, source_path, staging)

            stage = "upload"
            result = await self.uploader.rename_and_upload(self.destination_bucket, metadata, source_path, staging)

        except ReportSinkError:
            raise
        except MigrationError as e:
            return self._failed(record, stage, e)
        except Exception as e:
            logger.exception("Unexpected error at %s stage for %s", stage, source_path)
            return self._failed(record, stage, e)
        finally:
            await self._cleanup(source_path, staging)

        return MigrationOutcome(
            record=record,
            status="MIGRATED",
            content_hash=metadata.content_hash,
            destination_key=result.destination_key,
        )

    def _failed(self, record: InputRecord, stage: MigrationStage, error: Exception) -> MigrationOutcome:
        details = getattr(error, "details", None) or {}
        logger.error(
            "Migration failed at %s stage for %s (line %s, declared size %s): %s %s",
            stage,
            record.source_path,
            record.line_number,
            record.declared_size,
            error,
            details,
        )
        return MigrationOutcome(record=record, status="FAILED", failed_stage=stage, error=str(error))

    async def _cleanup(self, source_path: str, staging: StagingHandle) -> None:
        try:
            await asyncio.to_thread(self.layout.delete_staging_file, staging)
        except asyncio.CancelledError:
            # Shutting down: remove the file without yielding again.
            self.layout.delete_staging_file(staging)
            raise
        except OSError as e:
            logger.error("Error cleaning up staging file %s for %s: %s", staging.local_path, source_path, e)
