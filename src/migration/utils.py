import hashlib
import logging
import uuid
from datetime import datetime, timezone
from pathlib import Path

from core.settings import CHUNK_SIZE_BYTES

logger = logging.getLogger(__name__)

SUPPORTED_HASH_ALGORITHMS = ("md5", "sha256")


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def new_run_id() -> str:
    return f"run_{utc_now().strftime('%Y%m%dT%H%M%SZ')}_{uuid.uuid4().hex[:8]}"


def file_hash(file_path: Path, algorithm: str = "md5", chunk_size: int = CHUNK_SIZE_BYTES) -> str:
    """Hex digest of a file's bytes, read in chunks."""
    if algorithm not in SUPPORTED_HASH_ALGORITHMS:
        raise ValueError(f"Unsupported hash algorithm '{algorithm}'. Expected one of {SUPPORTED_HASH_ALGORITHMS}")

    digest = hashlib.new(algorithm)
    with file_path.open("rb") as f:
        for chunk in iter(lambda: f.read(chunk_size), b""):
            digest.update(chunk)
    return digest.hexdigest()
