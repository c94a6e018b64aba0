"""
Utility functions and decorators for the UniLink FaceID core.

This module provides structlog setup and a timing decorator used by the
enrollment lifecycle operations.
"""

import functools
import logging
import sys
import time
from typing import Any, Callable, TypeVar
import structlog

# Initialize structured logger
logger = structlog.get_logger(__name__)

# Type variable for generic decorators
F = TypeVar("F", bound=Callable[..., Any])


def configure_logging(level: str = "INFO", structured: bool = False) -> None:
    """
    Configure structlog for the process.

    Log lines go to stderr so command output on stdout stays machine
    readable.

    Parameters
    ----------
    level : str, default="INFO"
        Minimum level to emit.
    structured : bool, default=False
        Render JSON lines instead of human-readable console output.
    """
    renderer = (
        structlog.processors.JSONRenderer()
        if structured
        else structlog.dev.ConsoleRenderer(colors=False)
    )

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso", utc=True),
            renderer,
        ],
        wrapper_class=structlog.make_filtering_bound_logger(
            logging.getLevelName(level.upper())
        ),
        logger_factory=structlog.PrintLoggerFactory(file=sys.stderr),
        cache_logger_on_first_use=False,
    )


def timer(func: F) -> F:
    """
    Decorator to measure and log function execution time.

    Parameters
    ----------
    func : Callable
        Function to be timed.

    Returns
    -------
    Callable
        Wrapped function with timing capability.

    Examples
    --------
    >>> @timer
    ... def enroll(identity, samples):
    ...     ...
    """

    @functools.wraps(func)
    def wrapper(*args, **kwargs):
        start_time = time.perf_counter()

        try:
            result = func(*args, **kwargs)
        except Exception as e:
            logger.debug(
                "Function execution failed",
                function_name=func.__qualname__,
                execution_time_ms=(time.perf_counter() - start_time) * 1000,
                error_type=type(e).__name__,
            )
            raise

        logger.debug(
            "Function execution completed",
            function_name=func.__qualname__,
            execution_time_ms=(time.perf_counter() - start_time) * 1000,
        )
        return result

    return wrapper
