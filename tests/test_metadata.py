import asyncio
import hashlib

import pytest

from migration.domain import StagingHandle
from migration.errors import FaultKind, HashError, MetadataError
from migration.metadata import MetadataFetcher
from migration.utils import file_hash

from conftest import FakeObjectStore, md5

SRC = "source-bucket"


def _stage(layout, source_path, data):
    handle = layout.handle_for(source_path)
    layout.ensure_run_directory()
    handle.local_path.write_bytes(data)
    return handle


def test_metadata_combines_head_and_staged_digest(staging_layout):
    data = b"psd-bytes" * 1000
    store = FakeObjectStore({(SRC, "a/b.psd"): data})
    handle = _stage(staging_layout, "a/b.psd", data)

    metadata = asyncio.run(MetadataFetcher(store).fetch_metadata(SRC, "a/b.psd", handle))

    assert metadata.content_hash == md5(data)
    assert metadata.content_type == "image/vnd.adobe.photoshop"
    assert metadata.declared_size == len(data)


def test_digest_depends_on_staged_bytes_only(staging_layout):
    # The store object differs from what was staged: the staged bytes win.
    store = FakeObjectStore({(SRC, "k"): b"remote"})
    handle = _stage(staging_layout, "k", b"local copy")

    metadata = asyncio.run(MetadataFetcher(store).fetch_metadata(SRC, "k", handle))

    assert metadata.content_hash == md5(b"local copy")


def test_sha256_is_supported(staging_layout):
    store = FakeObjectStore({(SRC, "k"): b"abc"})
    handle = _stage(staging_layout, "k", b"abc")

    metadata = asyncio.run(MetadataFetcher(store, hash_algorithm="sha256").fetch_metadata(SRC, "k", handle))

    assert metadata.content_hash == hashlib.sha256(b"abc").hexdigest()


def test_missing_content_type_defaults_to_octet_stream(staging_layout):
    store = FakeObjectStore({(SRC, "k"): b"abc"})
    store.content_types[(SRC, "k")] = None
    handle = _stage(staging_layout, "k", b"abc")

    metadata = asyncio.run(MetadataFetcher(store).fetch_metadata(SRC, "k", handle))

    assert metadata.content_type == "application/octet-stream"


def test_head_failure_raises_metadata_error(staging_layout):
    store = FakeObjectStore({(SRC, "k"): b"abc"})
    store.head_faults["k"] = FaultKind.ACCESS_DENIED
    handle = _stage(staging_layout, "k", b"abc")

    with pytest.raises(MetadataError) as excinfo:
        asyncio.run(MetadataFetcher(store).fetch_metadata(SRC, "k", handle))

    assert excinfo.value.source_path == "k"
    assert excinfo.value.details["kind"] == "access_denied"


def test_missing_staging_file_raises_hash_error(staging_layout):
    store = FakeObjectStore({(SRC, "k"): b"abc"})
    handle = StagingHandle(sanitized_name="k", local_path=staging_layout.run_root / "missing.tmp")

    with pytest.raises(HashError):
        asyncio.run(MetadataFetcher(store).fetch_metadata(SRC, "k", handle))


def test_file_hash_rejects_unknown_algorithm(tmp_path):
    p = tmp_path / "f"
    p.write_bytes(b"x")
    with pytest.raises(ValueError):
        file_hash(p, "crc32")


def test_file_hash_reads_in_chunks(tmp_path):
    p = tmp_path / "f"
    data = bytes(range(256)) * 50
    p.write_bytes(data)
    assert file_hash(p, "md5", chunk_size=7) == md5(data)
