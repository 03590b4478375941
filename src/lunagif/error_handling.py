"""Standardized Error Handling Utilities

Provides the exception hierarchy used across lunagif and a few helpers for
consistent error transformation and logging.
"""

from __future__ import annotations

import logging
import re
import traceback
from collections.abc import Iterator
from contextlib import contextmanager
from enum import Enum
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .error_classifier import ClassifiedError


class ErrorLevel(Enum):
    """Error severity levels for consistent logging."""

    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


class LunaGifError(Exception):
    """Base exception class for all lunagif errors."""

    def __init__(
        self, message: str, cause: Exception | None = None, context: dict | None = None
    ):
        super().__init__(message)
        self.cause = cause
        self.context = context or {}

    def __str__(self) -> str:
        base_msg = super().__str__()
        if self.cause:
            return f"{base_msg} (caused by: {self.cause})"
        return base_msg


class BoundaryUnavailableError(LunaGifError):
    """Raised when the privileged execution boundary cannot be reached."""

    pass


class WorkspaceError(LunaGifError):
    """Raised when a temporary working directory cannot be created."""

    pass


class FrameWriteError(LunaGifError):
    """Raised when a frame cannot be normalized or persisted.

    ``index`` is the position of the offending frame, when known.
    """

    def __init__(
        self,
        message: str,
        index: int | None = None,
        cause: Exception | None = None,
        context: dict | None = None,
    ):
        super().__init__(message, cause=cause, context=context)
        self.index = index


class ProcessSpawnError(LunaGifError):
    """Raised when the encoder process cannot be started at all."""

    pass


class ConfigurationError(LunaGifError):
    """Raised when configuration is invalid or missing."""

    pass


class GifEncodeError(LunaGifError):
    """Raised by callers that prefer exceptions over ``EncodeResult``."""

    def __init__(self, error: ClassifiedError):
        super().__init__(f"{error.message}: {error.hint}")
        self.error = error

    @property
    def kind(self):
        return self.error.kind

    @property
    def hint(self) -> str:
        return self.error.hint


def handle_error(
    error: Exception,
    operation: str,
    error_type: type[LunaGifError] = LunaGifError,
    level: ErrorLevel = ErrorLevel.ERROR,
    context: dict | None = None,
    logger: logging.Logger | None = None,
) -> None:
    """Log *error* and re-raise it as *error_type*.

    Args:
        error: Original exception that occurred
        operation: Description of operation that failed
        error_type: Type of LunaGifError to raise
        level: Logging level for the error
        context: Additional context information
        logger: Logger to use (defaults to module logger)

    Raises:
        LunaGifError: Transformed error
    """
    if logger is None:
        logger = logging.getLogger(__name__)

    message = f"Failed to {operation}: {error}"

    error_context = dict(context or {})
    error_context.update(
        {
            "operation": operation,
            "original_error_type": type(error).__name__,
        }
    )

    transformed_error = error_type(message, cause=error, context=error_context)

    log_message = f"🚨 {operation.capitalize()} failed: {error}"
    context_str = ", ".join(f"{k}={v}" for k, v in error_context.items())
    if context_str:
        log_message += f" (context: {context_str})"

    log_func = getattr(logger, level.value)
    log_func(log_message)

    if level in (ErrorLevel.ERROR, ErrorLevel.CRITICAL):
        logger.debug(f"Traceback for {operation}: {traceback.format_exc()}")

    raise transformed_error from error


@contextmanager
def error_context(
    operation: str,
    error_type: type[LunaGifError] = LunaGifError,
    level: ErrorLevel = ErrorLevel.ERROR,
    context: dict | None = None,
    logger: logging.Logger | None = None,
) -> Iterator[None]:
    """Context manager for standardized error handling.

    Usage:
        with error_context("create temp directory", WorkspaceError):
            risky_operation()

    lunagif errors pass through unchanged; anything else is logged and
    re-raised as *error_type*.
    """
    try:
        yield
    except LunaGifError:
        raise
    except Exception as e:
        handle_error(e, operation, error_type, level, context, logger)


def log_warning_with_context(
    message: str, context: dict | None = None, logger: logging.Logger | None = None
) -> None:
    """Log a warning with standardized context formatting.

    Args:
        message: Warning message
        context: Additional context information
        logger: Logger to use
    """
    if logger is None:
        logger = logging.getLogger(__name__)

    warning_msg = f"⚠️  {message}"
    if context:
        context_str = ", ".join(f"{k}={v}" for k, v in context.items())
        warning_msg += f" (context: {context_str})"

    logger.warning(warning_msg)


def clean_error_message(error_msg: str, max_length: int = 500) -> str:
    """Collapse a raw error report into a single displayable line.

    Line breaks and tabs become spaces, control characters are removed, runs
    of whitespace are collapsed and the result is truncated to *max_length*.
    """
    cleaned = str(error_msg)

    cleaned = cleaned.replace("\n", " ").replace("\r", " ").replace("\t", " ")
    cleaned = re.sub(r"[\x00-\x08\x0B\x0C\x0E-\x1F\x7F]", "", cleaned)
    cleaned = re.sub(r"\s+", " ", cleaned).strip()

    if len(cleaned) > max_length:
        cleaned = cleaned[: max_length - 3] + "..."

    return cleaned
