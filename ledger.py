"""Append-only job ledger for ingestion runs.

Every run writes exactly twice: a RUNNING row when it starts and the final
counters when it ends. Finished rows are never touched again.
"""

import logging
from typing import Any

from database import Database
from errors import LedgerError
from models.job import RunHandle, RunResult, RunType

logger = logging.getLogger(__name__)


class JobLedger:
    """Records the start and end of each pipeline run."""

    def __init__(self, db: Database):
        self.db = db

    def start_run(self, run_type: RunType, requested_count: int | None = None) -> RunHandle:
        """Open a ledger entry in RUNNING state.

        Args:
            run_type: SCHEDULED or MANUAL
            requested_count: Stored for manual runs only
        """
        manual_count = requested_count if run_type == RunType.MANUAL else None
        handle = self.db.start_run(run_type, manual_count)
        logger.info("Run started | run=%d type=%s", handle.id, run_type.value)
        return handle

    def finish_run(self, handle: RunHandle, result: RunResult) -> None:
        """Close a ledger entry with final counters and errors.

        Raises:
            LedgerError: If the run was already finished or does not exist
        """
        if not self.db.finish_run(handle.id, result):
            raise LedgerError(f"Run {handle.id} is not open")
        logger.info(
            "Run finished | run=%d status=%s found=%d processed=%d failed=%d",
            handle.id, result.status.value, result.articles_found,
            result.articles_processed, result.articles_failed,
        )

    def recent(self, limit: int = 10) -> list[dict[str, Any]]:
        """Most recent runs, newest first."""
        return self.db.recent_runs(limit)
