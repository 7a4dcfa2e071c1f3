from __future__ import annotations

import logging
from typing import Any, BinaryIO, Callable, Iterator, Protocol

import boto3
from boto3.exceptions import S3UploadFailedError
from boto3.s3.transfer import TransferConfig
from botocore.config import Config as BotoConfig
from botocore.exceptions import (
    BotoCoreError,
    ClientError,
    IncompleteReadError,
    ResponseStreamingError,
)
from urllib3.exceptions import ProtocolError

from core.settings import CHUNK_SIZE_BYTES
from migration.errors import FaultKind, ObjectStoreFault

logger = logging.getLogger(__name__)

# Cumulative bytes sent so far. Diagnostic only.
ProgressCallback = Callable[[int], None]

_NOT_FOUND_CODES = {"NoSuchKey", "NotFound", "404"}
_ACCESS_DENIED_CODES = {"AccessDenied", "Forbidden", "403"}
_THROTTLED_CODES = {"SlowDown", "Throttling", "ThrottlingException", "RequestLimitExceeded", "503"}


class ObjectStream(Protocol):
    content_length: int | None

    def iter_chunks(self, chunk_size: int = CHUNK_SIZE_BYTES) -> Iterator[bytes]:
        ...

    def close(self) -> None:
        ...


class ObjectStore(Protocol):
    """Capability the pipeline needs from an object store. Faults are ObjectStoreFault."""

    def get_object_stream(self, bucket: str, key: str) -> ObjectStream:
        ...

    def head_object(self, bucket: str, key: str) -> dict[str, Any]:
        ...

    def put_object_stream(
        self,
        bucket: str,
        key: str,
        content_type: str,
        body: BinaryIO,
        progress: ProgressCallback | None = None,
    ) -> dict[str, Any]:
        ...


def classify_error(error: BaseException) -> FaultKind:
    """Map a boto3/botocore/urllib3 exception to a FaultKind."""
    if isinstance(error, ObjectStoreFault):
        return error.kind

    if isinstance(error, (IncompleteReadError, ResponseStreamingError, ProtocolError)):
        return FaultKind.INCOMPLETE_STREAM

    if isinstance(error, ClientError):
        code = str(error.response.get("Error", {}).get("Code", ""))
        status = str(error.response.get("ResponseMetadata", {}).get("HTTPStatusCode", ""))
        if code in _NOT_FOUND_CODES or status == "404":
            return FaultKind.NOT_FOUND
        if code in _ACCESS_DENIED_CODES or status == "403":
            return FaultKind.ACCESS_DENIED
        if code in _THROTTLED_CODES or status == "503":
            return FaultKind.THROTTLED

    return FaultKind.OTHER


def _fault(operation: str, bucket: str, key: str, error: BaseException) -> ObjectStoreFault:
    kind = classify_error(error)
    return ObjectStoreFault(
        f"{operation} failed for s3://{bucket}/{key}: {error}",
        kind=kind,
        details={"bucket": bucket, "key": key, "operation": operation, "error": str(error)},
    )


class S3ObjectStream:
    """Adapts a botocore StreamingBody; read faults surface as ObjectStoreFault."""

    def __init__(self, bucket: str, key: str, body: Any, content_length: int | None):
        self._bucket = bucket
        self._key = key
        self._body = body
        self.content_length = content_length

    def iter_chunks(self, chunk_size: int = CHUNK_SIZE_BYTES) -> Iterator[bytes]:
        try:
            # StreamingBody verifies the received length against Content-Length at EOF.
            for chunk in self._body.iter_chunks(chunk_size):
                yield chunk
        except (BotoCoreError, ClientError, ProtocolError) as e:
            raise _fault("GetObject stream", self._bucket, self._key, e) from e

    def close(self) -> None:
        self._body.close()


class S3ObjectStore:
    """ObjectStore backed by a boto3 S3 client."""

    def __init__(self, client: Any, *, chunk_size: int = CHUNK_SIZE_BYTES):
        self._client = client
        self._transfer_config = TransferConfig(multipart_chunksize=max(chunk_size, 5 * 1024 * 1024))

    @classmethod
    def from_settings(
        cls,
        *,
        region_name: str | None = None,
        endpoint_url: str | None = None,
        connect_timeout: float = 10.0,
        read_timeout: float = 60.0,
        max_pool_connections: int = 10,
        chunk_size: int = CHUNK_SIZE_BYTES,
    ) -> "S3ObjectStore":
        config = BotoConfig(
            connect_timeout=connect_timeout,
            read_timeout=read_timeout,
            retries={"max_attempts": 3, "mode": "standard"},
            max_pool_connections=max_pool_connections,
        )
        client = boto3.client("s3", region_name=region_name, endpoint_url=endpoint_url, config=config)
        return cls(client, chunk_size=chunk_size)

    def get_object_stream(self, bucket: str, key: str) -> S3ObjectStream:
        try:
            response = self._client.get_object(Bucket=bucket, Key=key)
        except (BotoCoreError, ClientError) as e:
            raise _fault("GetObject", bucket, key, e) from e

        content_length = response.get("ContentLength")
        return S3ObjectStream(bucket, key, response["Body"], int(content_length) if content_length is not None else None)

    def head_object(self, bucket: str, key: str) -> dict[str, Any]:
        try:
            return self._client.head_object(Bucket=bucket, Key=key)
        except (BotoCoreError, ClientError) as e:
            raise _fault("HeadObject", bucket, key, e) from e

    def put_object_stream(
        self,
        bucket: str,
        key: str,
        content_type: str,
        body: BinaryIO,
        progress: ProgressCallback | None = None,
    ) -> dict[str, Any]:
        sent = 0

        def _on_bytes(amount: int) -> None:
            nonlocal sent
            sent += amount
            if progress is not None:
                progress(sent)

        try:
            self._client.upload_fileobj(
                body,
                bucket,
                key,
                ExtraArgs={"ContentType": content_type},
                Callback=_on_bytes,
                Config=self._transfer_config,
            )
        except (BotoCoreError, ClientError, S3UploadFailedError) as e:
            raise _fault("PutObject", bucket, key, e) from e

        # upload_fileobj returns nothing; reaching here means the store accepted every part.
        return {"Bucket": bucket, "Key": key, "Location": f"s3://{bucket}/{key}", "BytesSent": sent}
