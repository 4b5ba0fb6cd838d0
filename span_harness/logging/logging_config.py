"""Centralized logging configuration for the span storage harness.

@public

Supports YAML-based configuration and programmatic setup with defaults that
suit test runs: a compact console format for harness modules and WARNING for
everything else (container drivers are chatty).

Usage:
    >>> from span_harness.logging import get_harness_logger
    >>> logger = get_harness_logger(__name__)
    >>> logger.info("Container started")

Environment variables:
    SPAN_HARNESS_LOGGING_CONFIG: Path to custom logging.yml
    SPAN_HARNESS_LOG_LEVEL: Default log level for harness loggers (INFO, DEBUG, etc.)
"""

import logging
import logging.config
import os
from pathlib import Path
from typing import Any, Dict, Optional

import yaml

# Default log levels for different components
DEFAULT_LOG_LEVELS = {
    "span_harness": "INFO",
    "span_harness.settlement": "INFO",
    "span_harness.storage": "INFO",
    "span_harness.containers": "INFO",
}


class LoggingConfig:
    """Manages logging configuration for the harness.

    @public

    Configuration precedence:
        1. Explicit config_path parameter
        2. SPAN_HARNESS_LOGGING_CONFIG environment variable
        3. Default configuration

    Example:
        >>> config = LoggingConfig()
        >>> config.apply()
        >>>
        >>> config = LoggingConfig(Path("custom_logging.yml"))
        >>> config.apply()

    Note:
        Configuration is lazy-loaded and cached after first access.
    """

    def __init__(self, config_path: Optional[Path] = None):
        """Initialize logging configuration.

        Args:
            config_path: Optional path to YAML configuration file.
                        If None, checks the environment and falls back
                        to the default configuration.
        """
        self.config_path = config_path or self._get_default_config_path()
        self._config: Optional[Dict[str, Any]] = None

    @staticmethod
    def _get_default_config_path() -> Optional[Path]:
        """Get config path from SPAN_HARNESS_LOGGING_CONFIG, if set."""
        if env_path := os.environ.get("SPAN_HARNESS_LOGGING_CONFIG"):
            return Path(env_path)
        return None

    def load_config(self) -> Dict[str, Any]:
        """Load logging configuration from file or defaults.

        Returns:
            Dictionary in logging.config.dictConfig format. Cached after
            first load; create a new LoggingConfig to reload from disk.
        """
        if self._config is None:
            if self.config_path and self.config_path.exists():
                with open(self.config_path, "r") as f:
                    self._config = yaml.safe_load(f)
            else:
                self._config = self._get_default_config()
        assert self._config is not None
        return self._config

    @staticmethod
    def _get_default_config() -> Dict[str, Any]:
        """Get default logging configuration.

        Default format:
            "HH:MM:SS.mmm | LEVEL | logger.name - message"
        """
        env_level = os.environ.get("SPAN_HARNESS_LOG_LEVEL")
        loggers: Dict[str, Dict[str, Any]] = {
            name: {"level": env_level or default} for name, default in DEFAULT_LOG_LEVELS.items()
        }
        loggers["span_harness"].update(handlers=["console"], propagate=False)

        return {
            "version": 1,
            "disable_existing_loggers": False,
            "formatters": {
                "standard": {
                    "format": "%(asctime)s.%(msecs)03d | %(levelname)-7s | %(name)s - %(message)s",
                    "datefmt": "%H:%M:%S",
                },
                "detailed": {
                    "format": ("%(asctime)s | %(levelname)-7s | %(name)s | %(funcName)s:%(lineno)d - %(message)s"),
                    "datefmt": "%Y-%m-%d %H:%M:%S",
                },
            },
            "handlers": {
                "console": {
                    "class": "logging.StreamHandler",
                    "formatter": "standard",
                    "stream": "ext://sys.stdout",
                },
            },
            "loggers": loggers,
            "root": {
                "level": "WARNING",
                "handlers": ["console"],
            },
        }

    def apply(self):
        """Apply the configuration with logging.config.dictConfig.

        Multiple calls reconfigure logging.
        """
        logging.config.dictConfig(self.load_config())


# Global configuration instance
_logging_config: Optional[LoggingConfig] = None


def setup_logging(config_path: Optional[Path] = None, level: Optional[str] = None):
    """Setup logging for the harness.

    @public

    Args:
        config_path: Optional path to YAML logging configuration file.
        level: Optional log level override applied to every harness logger.

    Example:
        >>> setup_logging()
        >>> setup_logging(level="DEBUG")
        >>> setup_logging(Path("custom.yml"), level="WARNING")
    """
    global _logging_config

    _logging_config = LoggingConfig(config_path)
    _logging_config.apply()

    if level:
        for logger_name in DEFAULT_LOG_LEVELS:
            logging.getLogger(logger_name).setLevel(level)


def get_harness_logger(name: str) -> logging.Logger:
    """Get a logger for harness components.

    @public

    Initializes logging on first use.

    Args:
        name: Logger name, typically __name__.

    Example:
        >>> logger = get_harness_logger(__name__)
        >>> logger.debug("Polling nodes")
    """
    if _logging_config is None:
        setup_logging()

    return logging.getLogger(name)
