"""Text normalization for article bodies.

Strips markup, decodes the handful of HTML entities the content API emits,
and collapses whitespace. Counts are computed on the cleaned text and stored
alongside both the source article and its summary.
"""

import re
from dataclasses import dataclass

_TAG_PATTERN = re.compile(r"<[^>]*>")
_WHITESPACE_PATTERN = re.compile(r"\s+")

# Applied in order, so '&amp;lt;' decodes all the way to '<'
_ENTITIES = (
    ("&quot;", '"'),
    ("&amp;", "&"),
    ("&lt;", "<"),
    ("&gt;", ">"),
    ("&nbsp;", " "),
)


@dataclass(frozen=True)
class NormalizedText:
    """Cleaned body text with its counts."""

    text: str
    word_count: int
    character_count: int


def clean_body_text(raw: str | None) -> str:
    """Remove tags and entities and normalize whitespace.

    Example:
        >>> clean_body_text("<p>Hello   world</p>&nbsp;test")
        'Hello world test'
    """
    if not raw:
        return ""
    text = _TAG_PATTERN.sub("", raw)
    for entity, replacement in _ENTITIES:
        text = text.replace(entity, replacement)
    return _WHITESPACE_PATTERN.sub(" ", text).strip()


def count_words(text: str) -> int:
    return len([word for word in text.split() if word])


def count_characters(text: str) -> int:
    return len(text)


def normalize(raw: str | None) -> NormalizedText:
    """Clean raw body text and compute its word and character counts."""
    text = clean_body_text(raw)
    return NormalizedText(
        text=text,
        word_count=count_words(text),
        character_count=count_characters(text),
    )
