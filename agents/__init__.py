"""PydanticAI agents for the newsbrief pipeline.

SummarizerAgent:
    Turns one cleaned article body into a structured summary (heading,
    category, summary paragraphs, 3 TL;DR bullets, 5 FAQs) with a token
    usage cost estimate.

Example:
    >>> from agents import SummarizerAgent
    >>> summarizer = SummarizerAgent(config)
"""

from agents.summarizer import SummarizerAgent, estimate_cost, validate_summary

__all__ = [
    "SummarizerAgent",
    "estimate_cost",
    "validate_summary",
]
