"""Source article model for content API results.

Each SourceArticle is one item returned by the content API search endpoint.
The external id (e.g. 'environment/2025/mar/02/...') is assigned by the API
and is the pipeline's natural dedupe key.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field


class ArticleStatus(str, Enum):
    """Publication lifecycle of a stored article."""

    PUBLISHED = "PUBLISHED"
    UNPUBLISHED = "UNPUBLISHED"


class SourceArticle(BaseModel):
    """A news article fetched from the content API.

    Attributes:
        id: External identifier (globally unique, stable)
        type: Content type ('article', 'liveblog', ...)
        section: Standardized section label ('opinion', 'science', ...)
        published_at: Publication timestamp (UTC)
        url: Canonical web URL
        thumbnail: Optional thumbnail image URL
        body_text: Raw body text as delivered by the API
    """

    id: str = Field(description="External article identifier")
    type: str = Field(default="article", description="Content type")
    section: str = Field(description="Standardized section label")
    published_at: datetime = Field(description="Publication timestamp (UTC)")
    url: str = Field(default="", description="Canonical web URL")
    thumbnail: str | None = Field(default=None, description="Thumbnail image URL")
    body_text: str = Field(default="", description="Raw body text")

    @classmethod
    def from_api(cls, item: dict[str, Any], section: str | None = None) -> "SourceArticle":
        """Build an article from one content API result.

        Args:
            item: Result object from the API response
            section: Standardized section label; defaults to the API's sectionName

        Returns:
            Parsed SourceArticle
        """
        fields = item.get("fields") or {}
        published = item.get("webPublicationDate")
        if published:
            published_at = datetime.fromisoformat(published.replace("Z", "+00:00"))
        else:
            published_at = datetime.now(timezone.utc)
        return cls(
            id=item["id"],
            type=item.get("type") or "article",
            section=section or item.get("sectionName") or "",
            published_at=published_at,
            url=item.get("webUrl") or "",
            thumbnail=fields.get("thumbnail") or None,
            body_text=fields.get("bodyText") or "",
        )

    def __str__(self) -> str:
        return f"SourceArticle({self.id}, section={self.section})"
