"""
Fallback combinator for instrumentation code paths.
Every place where the audit logger tolerates a failure calls recover() with an
explicit fallback, so the degrade policy is visible at the call site.
"""

from typing import Callable, TypeVar

import structlog

logger = structlog.get_logger(__name__)

T = TypeVar("T")


def recover(
    operation: Callable[[], T],
    fallback: Callable[[Exception], T],
    event: str = "Instrumentation step failed",
    **log_context: object,
) -> T:
    """
    Run `operation`; on any exception return `fallback(exc)` instead.

    Args:
        operation: Zero-argument callable performing the fallible step.
        fallback: Receives the raised exception and produces the substitute value.
        event: Debug log message recorded when the fallback is used.
        **log_context: Extra fields bound to the debug log entry.

    Returns:
        The operation result, or the fallback value.
    """
    try:
        return operation()
    except Exception as exc:
        logger.debug(event, error=str(exc), exc_type=type(exc).__name__, **log_context)
        return fallback(exc)


def constant(value: T) -> Callable[[Exception], T]:
    """Fallback that ignores the exception and yields a fixed value."""
    return lambda exc: value
