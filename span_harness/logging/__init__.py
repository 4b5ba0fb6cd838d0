"""Logging infrastructure for the span storage harness.

@public

Key components:
    get_harness_logger: Factory function for harness loggers
    setup_logging: Initialize logging configuration from YAML or defaults
    LoggingConfig: Configuration class for logging settings

Example:
    >>> from span_harness.logging import get_harness_logger
    >>>
    >>> logger = get_harness_logger(__name__)
    >>> logger.info("Processing started")
"""

from .logging_config import LoggingConfig, get_harness_logger, setup_logging

__all__ = [
    "LoggingConfig",
    "setup_logging",
    "get_harness_logger",
]
