"""URL slug generation for summary headings.

Slugs are lowercase ASCII, hyphen separated and at most 60 characters. A slug
already owned by a different article gets a numeric suffix ('-1', '-2', ...).

The uniqueness check here is a read followed by a later write, so two
concurrent runs can pick the same slug. The UNIQUE index on
article_summaries.slug is what actually guarantees uniqueness; the
orchestrator reacts to SlugConflictError by asking for a new slug.
"""

import logging
import re

from database import Database
from errors import SlugExhaustedError

logger = logging.getLogger(__name__)

_INVALID_CHARS = re.compile(r"[^a-z0-9\s-]")
_WHITESPACE = re.compile(r"\s+")
_HYPHENS = re.compile(r"-+")

# Used when a heading has no ASCII letters or digits at all
FALLBACK_SLUG = "story"


def generate_slug(heading: str, max_length: int = 60) -> str:
    """Derive the base slug for a heading.

    Example:
        >>> generate_slug("Climate Crisis Deepens!")
        'climate-crisis-deepens'
    """
    slug = _INVALID_CHARS.sub("", heading.lower()).strip()
    slug = _WHITESPACE.sub("-", slug)
    slug = _HYPHENS.sub("-", slug).strip("-")
    # Truncation can cut mid-word and leave a dangling hyphen
    return slug[:max_length].rstrip("-")


class SlugAssigner:
    """Finds a free slug for a heading against the summary store."""

    def __init__(self, db: Database, max_length: int = 60, max_suffix: int = 1000):
        """Initialize the assigner.

        Args:
            db: Store used to look up slug owners
            max_length: Base slug length cap
            max_suffix: Highest numeric suffix tried before giving up
        """
        self.db = db
        self.max_length = max_length
        self.max_suffix = max_suffix

    def assign(self, heading: str, exclude_id: str | None = None) -> str:
        """Return the first free slug for a heading.

        Args:
            heading: Generated summary heading
            exclude_id: Article whose own slug counts as free (re-processing)

        Raises:
            SlugExhaustedError: If every candidate up to max_suffix is taken
        """
        base = generate_slug(heading, self.max_length) or FALLBACK_SLUG

        for counter in range(self.max_suffix + 1):
            slug = base if counter == 0 else f"{base}-{counter}"
            owner = self.db.slug_owner(slug)
            if owner is None or owner == exclude_id:
                if counter:
                    logger.debug("Slug collision resolved | base=%s slug=%s", base, slug)
                return slug

        raise SlugExhaustedError(
            f"No free slug for '{base}' after {self.max_suffix} suffixes"
        )
