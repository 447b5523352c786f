"""Optional Logfire tracing for pipeline runs.

When enabled, PydanticAI agent calls are instrumented automatically and
trace_operation() opens named spans around runs and articles. When disabled
(or logfire is not installed) trace_operation() is a no-op.

Enable via configuration:
    ENABLE_LOGFIRE=true
    LOGFIRE_TOKEN=your-token  # Optional
"""

import logging
import time
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Any, Generator

logger = logging.getLogger(__name__)


@dataclass
class TracingContext:
    """Process-wide tracing state."""
    enabled: bool = False
    service_name: str = "newsbrief"
    _logfire_configured: bool = field(default=False, init=False)


_context = TracingContext()


def setup_tracing(
    enabled: bool = False,
    service_name: str = "newsbrief",
    token: str = "",
) -> TracingContext:
    """Configure Logfire and instrument PydanticAI.

    Args:
        enabled: Whether to enable tracing
        service_name: Service name reported to Logfire
        token: Logfire write token (optional for local use)
    """
    _context.enabled = enabled
    _context.service_name = service_name

    if not enabled:
        logger.debug("Tracing disabled")
        return _context

    try:
        import logfire

        logfire.configure(service_name=service_name, token=token or None)
        logfire.instrument_pydantic_ai()
        _context._logfire_configured = True
        logger.info("Logfire tracing enabled | service=%s", service_name)
    except ImportError:
        logger.warning("Logfire not installed. Tracing disabled.")
        _context.enabled = False
    except Exception as e:
        logger.error("Failed to configure Logfire: %s", e)
        _context.enabled = False

    return _context


@contextmanager
def trace_operation(
    name: str,
    attributes: dict[str, Any] | None = None,
) -> Generator[dict[str, Any], None, None]:
    """Open a span for an operation.

    Yields a dict; keys added to it are attached to the span on exit.
    """
    start = time.monotonic()
    result_attrs: dict[str, Any] = {}
    try:
        if _context.enabled and _context._logfire_configured:
            import logfire

            with logfire.span(name, **(attributes or {})) as span:
                yield result_attrs
                for key, value in result_attrs.items():
                    span.set_attribute(key, value)
        else:
            yield result_attrs
    finally:
        logger.debug("Operation '%s' completed in %.2fs", name, time.monotonic() - start)
