"""Logging and optional tracing for the newsbrief pipeline.

setup_logging / set_run_context / set_article_context:
    Console + rotating file logging with run and article ids on every line.

setup_tracing / trace_operation:
    Optional Logfire spans with PydanticAI instrumentation.
    Requires: pip install 'newsbrief[tracing]'
"""

from observability.logging import (
    clear_article_context,
    clear_context,
    set_article_context,
    set_run_context,
    setup_logging,
)
from observability.tracing import TracingContext, setup_tracing, trace_operation

__all__ = [
    "clear_article_context",
    "clear_context",
    "set_article_context",
    "set_run_context",
    "setup_logging",
    "TracingContext",
    "setup_tracing",
    "trace_operation",
]
