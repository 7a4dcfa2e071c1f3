from __future__ import annotations

import asyncio
import logging
from enum import Enum
from pathlib import Path

from core.settings import CHUNK_SIZE_BYTES, MAX_DOWNLOAD_ATTEMPTS
from migration.domain import StagingHandle
from migration.errors import DownloadError, FaultKind, ObjectStoreFault, RetryExhaustedError
from migration.object_store import ObjectStore, ObjectStream
from migration.staging_layout import StagingLayout

logger = logging.getLogger(__name__)


class DownloadState(str, Enum):
    IDLE = "idle"
    STREAMING = "streaming"
    RETRYING = "retrying"
    FAILED = "failed"
    DONE = "done"


class StreamEvent(str, Enum):
    START = "start"
    STREAM_COMPLETE = "stream_complete"
    INCOMPLETE_STREAM = "incomplete_stream"
    OTHER_FAULT = "other_fault"


TERMINAL_STATES = frozenset({DownloadState.FAILED, DownloadState.DONE})


def next_state(state: DownloadState, event: StreamEvent, attempts: int, max_attempts: int) -> DownloadState:
    """
    Pure transition function for one download.

    attempts is the number of stream opens made so far, including the one the
    event belongs to.
    """
    if state in TERMINAL_STATES:
        raise ValueError(f"No transition out of terminal state {state.value}")

    if event is StreamEvent.START:
        if state not in (DownloadState.IDLE, DownloadState.RETRYING):
            raise ValueError(f"Cannot start streaming from {state.value}")
        return DownloadState.STREAMING

    if state is not DownloadState.STREAMING:
        raise ValueError(f"Stream event {event.value} outside of streaming state ({state.value})")

    if event is StreamEvent.STREAM_COMPLETE:
        return DownloadState.DONE
    if event is StreamEvent.INCOMPLETE_STREAM:
        return DownloadState.RETRYING if attempts < max_attempts else DownloadState.FAILED
    return DownloadState.FAILED


class Downloader:
    """Streams one source object into its staging file with bounded retry."""

    def __init__(
        self,
        store: ObjectStore,
        layout: StagingLayout,
        *,
        max_attempts: int = MAX_DOWNLOAD_ATTEMPTS,
        chunk_size: int = CHUNK_SIZE_BYTES,
    ):
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        self.store = store
        self.layout = layout
        self.max_attempts = max_attempts
        self.chunk_size = chunk_size

    async def download(self, source_bucket: str, source_path: str) -> StagingHandle:
        handle = self.layout.handle_for(source_path)
        await asyncio.to_thread(self.layout.ensure_run_directory)

        logger.info("Fetching %s", source_path)

        state = DownloadState.IDLE
        attempts = 0
        last_fault: Exception | None = None

        try:
            while state not in TERMINAL_STATES:
                state = next_state(state, StreamEvent.START, attempts, self.max_attempts)
                attempts += 1

                try:
                    received = await self._attempt(source_bucket, source_path, handle.local_path)
                    event = StreamEvent.STREAM_COMPLETE
                except ObjectStoreFault as e:
                    last_fault = e
                    event = StreamEvent.INCOMPLETE_STREAM if e.is_transient_stream_fault else StreamEvent.OTHER_FAULT
                except OSError as e:
                    last_fault = e
                    event = StreamEvent.OTHER_FAULT

                state = next_state(state, event, attempts, self.max_attempts)

                if state is DownloadState.RETRYING:
                    logger.warning(
                        "Incomplete stream for %s, retrying (attempt %s/%s): %s",
                        source_path, attempts, self.max_attempts, last_fault,
                    )
        except Exception:
            self.layout.delete_staging_file(handle)
            raise

        if state is DownloadState.DONE:
            logger.info("Downloaded %s (%s bytes, %s attempt(s))", source_path, received, attempts)
            return handle

        self.layout.delete_staging_file(handle)
        if event is StreamEvent.INCOMPLETE_STREAM:
            raise RetryExhaustedError(source_path, attempts) from last_fault
        raise DownloadError(
            f"Download failed for {source_path}: {last_fault}",
            source_path,
            {"attempts": attempts, "error": str(last_fault)},
        ) from last_fault

    async def _attempt(self, source_bucket: str, source_path: str, local_path: Path) -> int:
        stream = await asyncio.to_thread(self.store.get_object_stream, source_bucket, source_path)
        try:
            return await asyncio.to_thread(self._copy_to_file, stream, local_path)
        finally:
            await asyncio.to_thread(stream.close)

    def _copy_to_file(self, stream: ObjectStream, local_path: Path) -> int:
        # "wb" truncates: every attempt starts from an empty staging file.
        received = 0
        with open(local_path, "wb") as f:
            for chunk in stream.iter_chunks(self.chunk_size):
                f.write(chunk)
                received += len(chunk)

        if stream.content_length is not None and received != stream.content_length:
            raise ObjectStoreFault(
                f"Stream ended after {received} of {stream.content_length} bytes",
                kind=FaultKind.INCOMPLETE_STREAM,
                details={"received": received, "expected": stream.content_length},
            )
        return received
