"""Error types for the newsbrief ingestion pipeline.

Hierarchy:
    PipelineError
        FetchError              - content API returned something unusable
        ExternalApiError        - network/timeout/non-2xx from either external API
        SummaryValidationError  - model output failed shape validation
        SlugExhaustedError      - no free slug within the suffix bound
        StoreError
            DuplicateArticleError  - marker insert hit the primary key
            SlugConflictError      - slug write hit the unique index
        LedgerError             - job run bookkeeping misuse

Per-article errors are caught by the orchestrator and recorded against the
article. Only run-level bookkeeping errors reach the trigger surface.
"""


class PipelineError(Exception):
    """Base class for all pipeline errors."""


class FetchError(PipelineError):
    """Content API response could not be used."""


class ExternalApiError(PipelineError):
    """An external API call failed (network, timeout, non-2xx)."""

    def __init__(self, message: str, status: int | None = None):
        super().__init__(message)
        self.status = status


class SummaryValidationError(PipelineError, ValueError):
    """Summarization output failed validation."""


class SlugExhaustedError(PipelineError):
    """Every slug candidate within the bound is taken."""


class StoreError(PipelineError):
    """Persistence layer error."""


class DuplicateArticleError(StoreError):
    """The external id has already been claimed."""

    def __init__(self, article_id: str):
        super().__init__(f"Article {article_id} already claimed")
        self.article_id = article_id


class SlugConflictError(StoreError):
    """The slug is already owned by another summary."""

    def __init__(self, slug: str):
        super().__init__(f"Slug '{slug}' already in use")
        self.slug = slug


class LedgerError(PipelineError):
    """Job run bookkeeping error."""
