import os
from typing import Any
from pathlib import Path

PROJECT_NAME = "binary_migration"

# Paths
PROJECT_ROOT_DIR = Path(__file__).parent.parent.parent.resolve()

DATA_DIR = PROJECT_ROOT_DIR / "data"
STAGING_DIR = DATA_DIR / "staging"
REPORT_PATH = DATA_DIR / "migration-report-with-filestream.txt"

CONFIG_PATH = PROJECT_ROOT_DIR / "config" / "migration.yaml"
LOG_FOLDER = PROJECT_ROOT_DIR / "logs"

os.makedirs(LOG_FOLDER, exist_ok=True)

# Object layout
DESTINATION_PREFIX = "binaries-to-be-migrated/"
DEFAULT_CONTENT_TYPE = "application/octet-stream"

# Staging
STAGING_NAME_MAX_LENGTH = 240
STAGING_FILE_SUFFIX = ".tmp"
STAGING_FILE_NAME_MAX_BYTES = 255  # NAME_MAX on common filesystems

# Transfer
MAX_DOWNLOAD_ATTEMPTS = 10
CHUNK_SIZE_BYTES = 131072  # 128KB
DEFAULT_HASH_ALGORITHM = "md5"


# Logging Configuration

LOGGING_CONFIG: dict[str, Any] = {
    "version": 1,
    "disable_existing_loggers": False,
    "formatters": {
        "standard": {
            "format": "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
        },
    },
    "handlers": {
        "console": {
            "class": "logging.StreamHandler",
            "formatter": "standard",
            "level": "INFO",
        },
        "rotating_file": {
            "class": "logging.handlers.RotatingFileHandler",
            "formatter": "standard",
            "level": "DEBUG",
            "filename": str(LOG_FOLDER / "migration.log"),
            "maxBytes": 10485760,  # 10MB
            "backupCount": 5,
            "encoding": "utf8",
        },
    },
    "loggers": {
        "": {  # root logger
            "handlers": ["console", "rotating_file"],
            "level": "DEBUG",
            "propagate": True
        },
        "botocore": {"level": "WARNING"},
        "boto3": {"level": "WARNING"},
        "s3transfer": {"level": "WARNING"},
        "urllib3": {"level": "WARNING"},
    }

}
