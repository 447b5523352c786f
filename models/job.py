"""Job run models for the ingestion ledger."""

from dataclasses import asdict, dataclass, field
from enum import Enum
from typing import Any


class RunType(str, Enum):
    """How a run was triggered."""

    SCHEDULED = "SCHEDULED"
    MANUAL = "MANUAL"


class RunStatus(str, Enum):
    """Ledger status of a run."""

    RUNNING = "RUNNING"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"


@dataclass
class RunResult:
    """Aggregate outcome of one ingestion batch.

    Attributes:
        success: False only when the run itself failed (not individual articles)
        articles_found: Candidates returned by the fetcher, before dedupe
        articles_processed: Articles whose summary reached COMPLETED
        articles_failed: Articles that failed anywhere after claiming
        articles_skipped: Candidates already claimed (in neither count above)
        tokens_used: Total summarizer tokens for the batch
        cost_usd: Total estimated summarizer cost for the batch
        errors: One message per failure, in processing order
        duration: Wall time in seconds
    """

    success: bool = False
    articles_found: int = 0
    articles_processed: int = 0
    articles_failed: int = 0
    articles_skipped: int = 0
    tokens_used: int = 0
    cost_usd: float = 0.0
    errors: list[str] = field(default_factory=list)
    duration: float = 0.0

    @property
    def status(self) -> RunStatus:
        return RunStatus.COMPLETED if self.success else RunStatus.FAILED

    @property
    def error_summary(self) -> str | None:
        """Errors joined for the ledger, or None when there were none."""
        return "; ".join(self.errors) if self.errors else None

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        d = asdict(self)
        d["duration"] = round(d["duration"], 2)
        d["cost_usd"] = round(d["cost_usd"], 6)
        return d

    def to_response(self) -> dict[str, Any]:
        """Payload returned by the trigger endpoints."""
        return {
            "articlesFound": self.articles_found,
            "articlesProcessed": self.articles_processed,
            "articlesFailed": self.articles_failed,
            "errors": list(self.errors),
        }


@dataclass(frozen=True)
class RunHandle:
    """Reference to a started ledger entry."""

    id: int
    run_type: RunType
    started_at: int


class AdminAction(str, Enum):
    """Operator actions recorded in the admin log."""

    MANUAL_FETCH = "MANUAL_FETCH"
    DELETE_ARTICLE = "DELETE_ARTICLE"
    BULK_DELETE = "BULK_DELETE"
    REPROCESS = "REPROCESS"
    PUBLISH = "PUBLISH"
    UNPUBLISH = "UNPUBLISH"
    RECOVER_STALE = "RECOVER_STALE"
