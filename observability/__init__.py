"""Observability package for the helpdesk agents."""

from .logging import (
    setup_logging,
    get_logger,
    get_structured_logger,
    elapsed_ms,
    StructuredLogger,
    JSONFormatter,
    ColoredFormatter
)

__all__ = [
    'setup_logging',
    'get_logger',
    'get_structured_logger',
    'elapsed_ms',
    'StructuredLogger',
    'JSONFormatter',
    'ColoredFormatter'
]
