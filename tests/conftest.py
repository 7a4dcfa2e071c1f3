from __future__ import annotations

import hashlib
from collections import defaultdict
from pathlib import Path
from typing import Any, BinaryIO, Iterator

import pytest

from migration.errors import FaultKind, ObjectStoreFault
from migration.object_store import ProgressCallback
from migration.report import ReportSink
from migration.staging_layout import StagingLayout

STAR_WARS_PATH = "assets/DAM/Designs/Licensed Designs/STRW - Star Wars/Space Cowboy comp.psd"


def md5(data: bytes) -> str:
    return hashlib.md5(data).hexdigest()


class FakeStream:
    def __init__(self, payload: bytes, *, fail_after: int | None = None, fault: FaultKind = FaultKind.INCOMPLETE_STREAM,
                 content_length: int | None = None):
        self._payload = payload
        self._fail_after = fail_after
        self._fault = fault
        self.content_length = len(payload) if content_length is None else content_length
        self.closed = False

    def iter_chunks(self, chunk_size: int = 4) -> Iterator[bytes]:
        limit = len(self._payload) if self._fail_after is None else self._fail_after
        for start in range(0, limit, chunk_size):
            yield self._payload[start:min(start + chunk_size, limit)]
        if self._fail_after is not None:
            raise ObjectStoreFault("stream interrupted", kind=self._fault)

    def close(self) -> None:
        self.closed = True


class FakeObjectStore:
    """In-memory ObjectStore with scriptable faults per key."""

    def __init__(self, objects: dict[tuple[str, str], bytes] | None = None, content_type: str = "image/vnd.adobe.photoshop"):
        self.objects: dict[tuple[str, str], bytes] = dict(objects or {})
        self.content_types: dict[tuple[str, str], str] = {k: content_type for k in self.objects}

        # key -> list of FaultKind, one consumed per get_object_stream call (raised mid-stream)
        self.stream_faults: dict[str, list[FaultKind]] = defaultdict(list)
        self.open_faults: dict[str, list[FaultKind]] = defaultdict(list)
        self.head_faults: dict[str, FaultKind] = {}
        self.put_faults: dict[str, FaultKind] = {}

        self.get_calls: dict[str, int] = defaultdict(int)
        self.put_calls: list[tuple[str, str, str]] = []
        self.streams: list[FakeStream] = []
        self.progress_events: list[int] = []

    def get_object_stream(self, bucket: str, key: str) -> FakeStream:
        self.get_calls[key] += 1
        if self.open_faults[key]:
            raise ObjectStoreFault(f"open failed for {key}", kind=self.open_faults[key].pop(0))
        if (bucket, key) not in self.objects:
            raise ObjectStoreFault(f"NoSuchKey: {key}", kind=FaultKind.NOT_FOUND)

        payload = self.objects[(bucket, key)]
        if self.stream_faults[key]:
            stream = FakeStream(payload, fail_after=len(payload) // 2, fault=self.stream_faults[key].pop(0))
        else:
            stream = FakeStream(payload)
        self.streams.append(stream)
        return stream

    def head_object(self, bucket: str, key: str) -> dict[str, Any]:
        if key in self.head_faults:
            raise ObjectStoreFault(f"head failed for {key}", kind=self.head_faults[key])
        if (bucket, key) not in self.objects:
            raise ObjectStoreFault(f"NoSuchKey: {key}", kind=FaultKind.NOT_FOUND)
        return {
            "ContentType": self.content_types.get((bucket, key)),
            "ContentLength": len(self.objects[(bucket, key)]),
        }

    def put_object_stream(self, bucket: str, key: str, content_type: str, body: BinaryIO,
                          progress: ProgressCallback | None = None) -> dict[str, Any]:
        self.put_calls.append((bucket, key, content_type))
        if key in self.put_faults:
            raise ObjectStoreFault(f"put failed for {key}", kind=self.put_faults[key])
        data = body.read()
        if progress is not None:
            progress(len(data))
        self.objects[(bucket, key)] = data
        self.content_types[(bucket, key)] = content_type
        return {"Bucket": bucket, "Key": key, "ETag": f'"{md5(data)}"'}

    def keys_in(self, bucket: str) -> list[str]:
        return sorted(k for b, k in self.objects if b == bucket)


@pytest.fixture
def staging_layout(tmp_path: Path) -> StagingLayout:
    return StagingLayout(staging_root=tmp_path / "staging", run_id="run_test")


@pytest.fixture
def report_path(tmp_path: Path) -> Path:
    return tmp_path / "report" / "migration-report.txt"


@pytest.fixture
def report_sink(report_path: Path):
    with ReportSink(report_path) as sink:
        yield sink


def staged_files(layout: StagingLayout) -> list[Path]:
    if not layout.staging_root.exists():
        return []
    return [p for p in layout.staging_root.rglob("*") if p.is_file()]
