from __future__ import annotations

import asyncio
import logging
from typing import Any

from core.settings import CHUNK_SIZE_BYTES, DEFAULT_CONTENT_TYPE, DEFAULT_HASH_ALGORITHM
from migration.domain import ObjectMetadata, StagingHandle
from migration.errors import HashError, MetadataError, ObjectStoreFault
from migration.object_store import ObjectStore
from migration.utils import file_hash

logger = logging.getLogger(__name__)


class MetadataFetcher:
    """Combines the source object's headers with the digest of the staged bytes."""

    def __init__(
        self,
        store: ObjectStore,
        *,
        hash_algorithm: str = DEFAULT_HASH_ALGORITHM,
        chunk_size: int = CHUNK_SIZE_BYTES,
    ):
        self.store = store
        self.hash_algorithm = hash_algorithm
        self.chunk_size = chunk_size

    async def fetch_metadata(self, source_bucket: str, source_path: str, staging: StagingHandle) -> ObjectMetadata:
        logger.info("Retrieving metadata and hashing %s", source_path)

        head, content_hash = await asyncio.gather(
            self._head(source_bucket, source_path),
            self._hash(source_path, staging),
        )

        metadata = ObjectMetadata(
            content_type=head.get("ContentType") or DEFAULT_CONTENT_TYPE,
            declared_size=int(head.get("ContentLength", 0) or 0),
            content_hash=content_hash,
        )
        logger.info("%s = %s", source_path, content_hash)
        return metadata

    async def _head(self, source_bucket: str, source_path: str) -> dict[str, Any]:
        try:
            return await asyncio.to_thread(self.store.head_object, source_bucket, source_path)
        except ObjectStoreFault as e:
            raise MetadataError(
                f"Head request failed for {source_path}: {e}",
                source_path,
                {"kind": e.kind.value, **e.details},
            ) from e

    async def _hash(self, source_path: str, staging: StagingHandle) -> str:
        try:
            return await asyncio.to_thread(file_hash, staging.local_path, self.hash_algorithm, self.chunk_size)
        except OSError as e:
            raise HashError(
                f"Cannot hash staging file {staging.local_path} for {source_path}: {e}",
                source_path,
                {"local_path": str(staging.local_path)},
            ) from e
