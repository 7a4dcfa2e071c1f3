from __future__ import annotations

import logging
from typing import Sequence

from migration.domain import BatchSummary, InputRecord, MigrationOutcome
from migration.job import MigrationJob
from migration.report import ReportSink
from migration.staging_layout import StagingLayout

logger = logging.getLogger(__name__)


class BatchRunner:
    """
    Coordinates: sweep staging -> migrate each record in order -> sweep staging.

    The report is the checkpoint:
      - opened once for the whole batch
      - one line per confirmed upload, in input order

    Exactly one item is in flight at a time, so staging disk usage is bounded
    by the largest single object.
    """

    def __init__(self, *, job: MigrationJob, report: ReportSink, layout: StagingLayout):
        self.job = job
        self.report = report
        self.layout = layout

    async def run_all(self, records: Sequence[InputRecord]) -> BatchSummary:
        run_id = self.layout.run_id
        total = len(records)
        logger.info("Run %s: %s record(s) to migrate.", run_id, total)

        outcomes: list[MigrationOutcome] = []

        with self.report:
            # Leftovers of crashed earlier runs, then of this one.
            self.layout.cleanup_stale_runs()
            self.layout.cleanup_run()
            try:
                for index, record in enumerate(records, start=1):
                    logger.info("[%s/%s] %s", index, total, record.source_path)
                    outcomes.append(await self.job.run(record))
            finally:
                # End-of-run tidy-up (safe even if nothing was migrated)
                self.layout.cleanup_run()

        summary = BatchSummary(outcomes=tuple(outcomes))
        logger.info(
            "Run %s complete: %s attempted, %s migrated, %s failed.",
            run_id,
            summary.attempted,
            summary.migrated,
            summary.failed,
        )
        for source_path in summary.failed_source_paths:
            logger.warning("Not migrated: %s", source_path)
        return summary
