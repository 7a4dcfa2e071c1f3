import argparse
import asyncio
import logging
from logging.config import dictConfig
from pathlib import Path

from core.settings import CONFIG_PATH, LOGGING_CONFIG
from migration.config import MigrationConfig, load_migration_config
from migration.domain import BatchSummary, RunContext
from migration.download import Downloader
from migration.errors import ConfigError, InputFormatError, ReportSinkError
from migration.input_records import load_input_records
from migration.job import MigrationJob
from migration.metadata import MetadataFetcher
from migration.object_store import ObjectStore, S3ObjectStore
from migration.report import ReportSink
from migration.runner import BatchRunner
from migration.staging_layout import StagingLayout
from migration.upload import Uploader
from migration.utils import new_run_id

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_ITEMS_FAILED = 1
EXIT_FATAL = 2


def build_runner(config: MigrationConfig, store: ObjectStore, ctx: RunContext) -> BatchRunner:
    layout = StagingLayout(staging_root=config.staging_dir, run_id=ctx.run_id)
    report = ReportSink(config.report_path)
    job = MigrationJob(
        source_bucket=config.source_bucket,
        destination_bucket=config.destination_bucket,
        layout=layout,
        downloader=Downloader(
            store,
            layout,
            max_attempts=config.max_download_attempts,
            chunk_size=config.chunk_size_bytes,
        ),
        metadata_fetcher=MetadataFetcher(
            store,
            hash_algorithm=config.hash_algorithm,
            chunk_size=config.chunk_size_bytes,
        ),
        uploader=Uploader(store, report, destination_prefix=config.destination_prefix),
    )
    return BatchRunner(job=job, report=report, layout=layout)


def main(argv: list[str] | None = None) -> int:
    dictConfig(LOGGING_CONFIG)

    parser = argparse.ArgumentParser(description="Copy binaries into a content-addressed destination bucket.")
    parser.add_argument("--config", type=Path, default=CONFIG_PATH, help="Path to the migration YAML config")
    args = parser.parse_args(argv)

    try:
        config = load_migration_config(args.config)
        records = load_input_records(config.input_csv_path)
    except (ConfigError, InputFormatError, OSError) as e:
        logger.error("Cannot start migration: %s", e)
        return EXIT_FATAL

    ctx = RunContext(run_id=new_run_id())
    store = S3ObjectStore.from_settings(
        region_name=config.s3.region_name,
        endpoint_url=config.s3.endpoint_url,
        connect_timeout=config.s3.connect_timeout,
        read_timeout=config.s3.read_timeout,
        max_pool_connections=config.s3.max_pool_connections,
        chunk_size=config.chunk_size_bytes,
    )
    runner = build_runner(config, store, ctx)

    try:
        summary: BatchSummary = asyncio.run(runner.run_all(records))
    except ReportSinkError as e:
        logger.error("Migration aborted, report is not writable: %s", e)
        return EXIT_FATAL
    except KeyboardInterrupt:
        logger.warning("Migration interrupted; current item abandoned.")
        return EXIT_FATAL

    return EXIT_OK if summary.failed == 0 else EXIT_ITEMS_FAILED
