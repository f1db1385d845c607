"""
Sampler chain error handling utilities.

This module provides the logger hierarchy, custom exception classes and
logging helpers shared by the configuration and pipeline layers.
"""

import logging
import os
import sys
from typing import Any, Dict, Optional

# Create the main logger
logger = logging.getLogger("samplerchain")

# Component-specific loggers
config_logger = logging.getLogger("samplerchain.config")
pipeline_logger = logging.getLogger("samplerchain.pipeline")

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


class SamplerChainError(Exception):
    """Base exception class for sampler chain errors."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None, recoverable: bool = False):
        """Initialize error with message and optional details.

        Args:
            message: Error description
            details: Additional context about the error
            recoverable: Whether the caller can reasonably retry with other input
        """
        self.message = message
        self.details = details or {}
        self.recoverable = recoverable
        super().__init__(message)

    def to_dict(self) -> Dict[str, Any]:
        """Convert error to dictionary for serialization."""
        return {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "details": self.details,
            "recoverable": self.recoverable,
        }


class GrammarError(SamplerChainError):
    """Exception raised when a grammar definition cannot be loaded."""
    pass


class InvalidPathError(GrammarError):
    """Exception raised when a grammar file path is empty."""

    def __init__(self, message: str = "Invalid grammar file path", details: Optional[Dict[str, Any]] = None):
        super().__init__(message, details=details)


class FileReadError(GrammarError):
    """Exception raised when a grammar file exists as a path but cannot be read.

    The underlying I/O or decoding error is kept on ``cause`` and is also
    chained as ``__cause__`` by the code raising it.
    """

    def __init__(self, path: str, cause: BaseException):
        super().__init__(
            f"Failed to read grammar file: {cause}",
            details={"path": path, "cause": type(cause).__name__},
        )
        self.path = path
        self.cause = cause


class ConfigurationError(SamplerChainError):
    """Exception raised for configuration errors."""
    pass


class ValidationError(SamplerChainError):
    """Exception raised for validation failures."""
    pass


def setup_logging(
    log_level: str = "INFO",
    log_file: Optional[str] = None,
    component_config: Optional[Dict[str, Dict[str, Any]]] = None,
) -> None:
    """Configure logging for the sampler chain package.

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        log_file: Path to log file (if None, logs to console only)
        component_config: Component-specific logging configuration, e.g.
            ``{"samplerchain.pipeline": {"level": "DEBUG"}}``
    """
    level = getattr(logging, log_level.upper())

    package_logger = logging.getLogger("samplerchain")
    package_logger.setLevel(level)

    # Prevent propagation to avoid duplicate logs
    package_logger.propagate = False
    package_logger.handlers = []

    formatter = logging.Formatter(LOG_FORMAT)

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(level)
    console_handler.setFormatter(formatter)
    package_logger.addHandler(console_handler)

    if log_file:
        log_dir = os.path.dirname(log_file)
        if log_dir:
            os.makedirs(log_dir, exist_ok=True)

        file_handler = logging.FileHandler(log_file, mode="w")
        file_handler.setLevel(level)
        file_handler.setFormatter(formatter)
        package_logger.addHandler(file_handler)

    component_loggers = {
        "samplerchain.config": config_logger,
        "samplerchain.pipeline": pipeline_logger,
    }

    for logger_name, logger_instance in component_loggers.items():
        logger_instance.handlers = []

        component_level = level
        if component_config and logger_name in component_config:
            component_level_name = component_config[logger_name].get("level", log_level)
            component_level = getattr(logging, component_level_name.upper())

        logger_instance.setLevel(component_level)
        logger_instance.propagate = False

        # Give each component its own handlers, mirroring the package logger
        for handler in package_logger.handlers:
            if isinstance(handler, logging.FileHandler) and log_file:
                new_handler = logging.FileHandler(log_file, mode="a")
            else:
                new_handler = logging.StreamHandler(sys.stdout)

            new_handler.setLevel(component_level)
            new_handler.setFormatter(handler.formatter)
            logger_instance.addHandler(new_handler)

        logger_instance.debug(
            f"Logger {logger_name} configured with level {logging.getLevelName(component_level)}"
        )


def log_exception(
    e: Exception, logger_instance: logging.Logger = logger, log_traceback: bool = True
) -> None:
    """Log exception details with appropriate formatting.

    Args:
        e: Exception instance
        logger_instance: Logger to use
        log_traceback: Whether to log full traceback
    """
    logger_instance.error(f"{type(e).__name__}: {str(e)}")
    if isinstance(e, SamplerChainError) and e.details:
        for key, value in e.details.items():
            logger_instance.error(f"  {key}: {value}")

    if log_traceback:
        logger_instance.debug("Traceback:", exc_info=True)
