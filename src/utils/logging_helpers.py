"""
Logging helper utilities for the exporter.

Provides the structlog JSON formatter used in-cluster and consistent
formatting for fatal startup errors.
"""

import logging
from typing import List, Optional

import structlog

# Processors applied to records from stdlib loggers before rendering
SHARED_PROCESSORS = [
    structlog.stdlib.add_log_level,
    structlog.stdlib.add_logger_name,
    structlog.processors.TimeStamper(fmt="iso", utc=True),
    structlog.processors.StackInfoRenderer(),
    structlog.processors.format_exc_info,
    structlog.processors.UnicodeDecoder(),
]


def json_log_formatter() -> structlog.stdlib.ProcessorFormatter:
    """
    Formatter rendering stdlib log records as single-line JSON.

    Module loggers keep using logging.getLogger(__name__); the formatter
    runs their records through the structlog processor chain.

    Examples:
        {"event": "Collection complete: ...", "level": "info",
         "logger": "core.collector", "timestamp": "2024-05-01T10:00:00.000000Z"}
    """
    return structlog.stdlib.ProcessorFormatter(
        foreign_pre_chain=SHARED_PROCESSORS,
        processors=[
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            structlog.processors.JSONRenderer(),
        ],
    )


def log_error_section(
    title: str,
    messages: List[str],
    logger: Optional[logging.Logger] = None,
    width: int = 60
) -> None:
    """
    Log an error section with separator lines and multiple messages.

    Args:
        title: Title message for the error section
        messages: List of error messages to display
        logger: Logger instance (defaults to root logger if not provided)
        width: Width of separator line in characters

    Examples:
        >>> log_error_section(
        ...     "Could not create Kubernetes client",
        ...     ["Error reading in-cluster config", "Pass --kubeconfig outside the cluster"]
        ... )
        ============================================================
        Could not create Kubernetes client
        Error reading in-cluster config
        Pass --kubeconfig outside the cluster
        ============================================================
    """
    if logger is None:
        logger = logging.getLogger()

    logger.error("=" * width)
    logger.error(title)

    for message in messages:
        if message:  # Allow empty strings for blank lines
            logger.error(message)
        else:
            logger.error("")

    logger.error("=" * width)
