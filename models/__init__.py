"""Pydantic models and records for the newsbrief pipeline.

SourceArticle:
    One content API result (external id, section, body text, ...).

ArticleSummary / FAQ:
    Structured output requested from the summarizer model.

SummaryResult:
    Validated ArticleSummary plus token usage and cost estimate.

ProcessingStatus / ArticleStatus:
    Lifecycle enums for stored summaries and articles.

RunType / RunStatus / RunResult / RunHandle / AdminAction:
    Job ledger and admin log records.

Example:
    >>> from models import SourceArticle, ArticleSummary, RunResult
"""

from models.article import ArticleStatus, SourceArticle
from models.summary import FAQ, ArticleSummary, ProcessingStatus, SummaryResult
from models.job import AdminAction, RunHandle, RunResult, RunStatus, RunType

__all__ = [
    "ArticleStatus",
    "SourceArticle",
    "FAQ",
    "ArticleSummary",
    "ProcessingStatus",
    "SummaryResult",
    "AdminAction",
    "RunHandle",
    "RunResult",
    "RunStatus",
    "RunType",
]
