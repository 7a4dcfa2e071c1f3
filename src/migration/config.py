import logging
import os
from pathlib import Path
from typing import Literal, Self

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError, model_validator

from core.settings import (
    CHUNK_SIZE_BYTES,
    DEFAULT_HASH_ALGORITHM,
    DESTINATION_PREFIX,
    MAX_DOWNLOAD_ATTEMPTS,
    REPORT_PATH,
    STAGING_DIR,
)
from migration.errors import ConfigError

logger = logging.getLogger(__name__)

ENV_OVERRIDES = {
    "MIGRATION_SOURCE_BUCKET": "source_bucket",
    "MIGRATION_DESTINATION_BUCKET": "destination_bucket",
}


class StrictBaseModel(BaseModel):
    model_config = ConfigDict(extra="forbid")


class S3Settings(StrictBaseModel):
    region_name: str | None = None
    endpoint_url: str | None = None
    connect_timeout: float = Field(default=10.0, gt=0)
    read_timeout: float = Field(default=60.0, gt=0)
    max_pool_connections: int = Field(default=10, ge=1)


class MigrationConfig(StrictBaseModel):
    source_bucket: str
    destination_bucket: str
    input_csv_path: Path

    report_path: Path = REPORT_PATH
    staging_dir: Path = STAGING_DIR

    destination_prefix: str = DESTINATION_PREFIX
    max_download_attempts: int = Field(default=MAX_DOWNLOAD_ATTEMPTS, ge=1)
    hash_algorithm: Literal["md5", "sha256"] = DEFAULT_HASH_ALGORITHM
    chunk_size_bytes: int = Field(default=CHUNK_SIZE_BYTES, ge=1024)

    s3: S3Settings = Field(default_factory=S3Settings)

    @model_validator(mode="after")
    def validate_config(self) -> Self:
        if not self.source_bucket.strip() or not self.destination_bucket.strip():
            raise ValueError("source_bucket and destination_bucket must not be empty")

        if self.destination_prefix and not self.destination_prefix.endswith("/"):
            raise ValueError(f"destination_prefix '{self.destination_prefix}' must end with '/'")

        return self


def load_migration_config(file_path: Path, environ: dict[str, str] | None = None) -> MigrationConfig:
    environ = dict(os.environ) if environ is None else environ

    try:
        with open(file_path, "r") as file:
            raw = yaml.safe_load(file) or {}
    except (OSError, yaml.YAMLError) as e:
        raise ConfigError(f"Error reading migration config from {file_path}: {e}") from e

    if not isinstance(raw, dict):
        raise ConfigError(f"Migration config {file_path} must be a mapping")

    for env_name, field_name in ENV_OVERRIDES.items():
        if environ.get(env_name):
            logger.info("Overriding %s from %s", field_name, env_name)
            raw[field_name] = environ[env_name]

    try:
        return MigrationConfig.model_validate(raw)
    except ValidationError as e:
        raise ConfigError(f"Error loading migration config from {file_path}: {e}") from e
