"""Summary models for AI-generated article summaries.

Model Hierarchy:
    ArticleSummary: Structured output requested from the language model
    SummaryResult: ArticleSummary plus token usage and cost estimate
    ProcessingStatus: Lifecycle of a stored summary record

The JSON schema sent to the provider is derived from ArticleSummary. Array
sizes are advertised in the schema only; the exact counts are re-checked by
validate_summary() in the summarizer so that failures carry a readable reason.
"""

from enum import Enum

from pydantic import BaseModel, Field


class ProcessingStatus(str, Enum):
    """Processing state of a summary record.

    A record is COMPLETED iff it carries a slug.
    """

    PENDING = "PENDING"
    PROCESSING = "PROCESSING"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"


class FAQ(BaseModel):
    """A single question/answer pair."""

    question: str = Field(description="Reader question about the article")
    answer: str = Field(description="Concise answer")


class ArticleSummary(BaseModel):
    """Structured summary returned by the summarizer model."""

    heading: str = Field(description="Engaging headline for the summary")
    category: str = Field(description="Category in maximum 3 words")
    summary: str = Field(
        description="500-word summary broken into 3-5 paragraphs separated by \\n\\n"
    )
    tldr: list[str] = Field(
        description="3 bullet points summarizing key takeaways",
        json_schema_extra={"minItems": 3, "maxItems": 3},
    )
    faqs: list[FAQ] = Field(
        description="5 relevant FAQs about the article",
        json_schema_extra={"minItems": 5, "maxItems": 5},
    )


class SummaryResult(BaseModel):
    """Validated summary with usage accounting."""

    summary: ArticleSummary
    tokens_used: int = Field(default=0, description="Total tokens reported by the API")
    estimated_cost_usd: float = Field(
        default=0.0,
        description="Approximate cost from a fixed 70/30 input/output split",
    )
