"""
Structured logging configuration using structlog.
Diagnostic output of the audit logger itself (delivery failures, debug
documents) goes through here, never through the document sink.
"""

import logging
import sys
from typing import Any, Optional

import structlog
from structlog.types import EventDict, Processor


def add_component_context(
    logger: Any, method_name: str, event_dict: EventDict
) -> EventDict:
    """Tag every diagnostic entry with the emitting component."""
    event_dict.setdefault("component", "request-audit")
    return event_dict


def configure_logging(
    log_level: Optional[str] = None, log_format: Optional[str] = None
) -> None:
    """
    Configure structlog with JSON formatting, or pretty console output when
    LOG_FORMAT is "console". Arguments override the environment settings.
    """
    from request_audit.core.config import get_settings

    settings = get_settings()
    level_name = (log_level or settings.LOG_LEVEL).upper()
    level = getattr(logging, level_name, logging.INFO)
    renderer_name = (log_format or settings.LOG_FORMAT).lower()

    shared_processors: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        add_component_context,
    ]

    if renderer_name == "console":
        renderer: Processor = structlog.dev.ConsoleRenderer(colors=True)
        processors = [*shared_processors, renderer]
    else:
        processors = [
            *shared_processors,
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(default=str),
        ]

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=False,
    )

    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=level,
    )

    # The Elasticsearch transport logs every request at INFO
    for noisy_logger in ("elastic_transport.transport", "elasticsearch"):
        logging.getLogger(noisy_logger).setLevel(logging.WARNING)
