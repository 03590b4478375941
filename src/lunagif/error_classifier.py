"""Error classification for the GIF encoding pipeline.

Maps low-level failure signals (exceptions, process results, stderr text) onto
a closed set of error kinds, each paired with a short user-facing message and a
remediation hint suitable for direct display.
"""

from __future__ import annotations

import errno
from dataclasses import dataclass
from enum import Enum

from .boundary import CommandResult
from .error_handling import LunaGifError, clean_error_message

__all__ = [
    "ClassifiedError",
    "ErrorKind",
    "classify",
    "describe",
]


class ErrorKind(str, Enum):
    """Closed taxonomy of pipeline failures."""

    ENCODER_UNAVAILABLE = "encoder_unavailable"
    WORKSPACE_CREATION_FAILED = "workspace_creation_failed"
    FRAME_WRITE_FAILED = "frame_write_failed"
    EMPTY_INPUT_DIRECTORY = "empty_input_directory"
    MISSING_BINARY = "missing_binary"
    INVALID_ARGUMENTS = "invalid_arguments"
    PERMISSION_DENIED = "permission_denied"
    UNKNOWN_ENCODER_FAILURE = "unknown_encoder_failure"


@dataclass(frozen=True)
class ClassifiedError:
    """A failure ready for display: what went wrong and what to try."""

    kind: ErrorKind
    message: str
    hint: str
    raw: str | None = None

    def __str__(self) -> str:
        return f"{self.message}: {self.hint}"


_CATALOGUE: dict[ErrorKind, tuple[str, str]] = {
    ErrorKind.ENCODER_UNAVAILABLE: (
        "FFmpeg is not available",
        "Install FFmpeg or place the bundled build next to the application, then restart.",
    ),
    ErrorKind.WORKSPACE_CREATION_FAILED: (
        "Could not create a temporary working directory",
        "Check free disk space and write access to the system temp directory.",
    ),
    ErrorKind.FRAME_WRITE_FAILED: (
        "Could not write animation frames to the working directory",
        "Check that every frame is a valid PNG image and that the temp directory is writable.",
    ),
    ErrorKind.EMPTY_INPUT_DIRECTORY: (
        "No PNG frames were found to encode",
        "Render at least one frame before exporting.",
    ),
    ErrorKind.MISSING_BINARY: (
        "FFmpeg executable not found",
        "Confirm the FFmpeg path is correct, or reinstall/redownload FFmpeg.",
    ),
    ErrorKind.INVALID_ARGUMENTS: (
        "FFmpeg rejected its arguments or input files",
        "Check the PNG frame format and file paths.",
    ),
    ErrorKind.PERMISSION_DENIED: (
        "FFmpeg does not have sufficient permissions",
        "Run as administrator or check file permissions.",
    ),
    ErrorKind.UNKNOWN_ENCODER_FAILURE: (
        "FFmpeg execution failed",
        "Check the FFmpeg installation and permissions.",
    ),
}

# Checked in order; first match wins.
_PATTERNS: list[tuple[ErrorKind, tuple[str, ...]]] = [
    (
        ErrorKind.MISSING_BINARY,
        (
            "enoent",
            "not recognized as an internal or external command",
            "command not found",
            "executable not found",
        ),
    ),
    (
        ErrorKind.INVALID_ARGUMENTS,
        (
            "invalid argument",
            "invalid data found",
            "error opening input",
            "no such file or directory",
        ),
    ),
    (
        ErrorKind.PERMISSION_DENIED,
        (
            "permission denied",
            "eacces",
            "eperm",
            "access is denied",
            "operation not permitted",
        ),
    ),
]

_EXCEPTION_KINDS: list[tuple[type[BaseException], ErrorKind]] = [
    (FileNotFoundError, ErrorKind.MISSING_BINARY),
    (PermissionError, ErrorKind.PERMISSION_DENIED),
]


def describe(kind: ErrorKind, raw: str | None = None) -> ClassifiedError:
    """Return the fixed message and hint for *kind*."""
    message, hint = _CATALOGUE[kind]
    return ClassifiedError(kind=kind, message=message, hint=hint, raw=raw)


def _cause_chain(error: BaseException) -> list[BaseException]:
    chain: list[BaseException] = []
    current: BaseException | None = error
    while current is not None and current not in chain:
        chain.append(current)
        current = current.cause if isinstance(current, LunaGifError) else current.__cause__
    return chain


def _exception_text(error: BaseException) -> str:
    parts = []
    for link in _cause_chain(error):
        parts.append(f"{type(link).__name__}: {link}")
        if isinstance(link, OSError) and link.errno in errno.errorcode:
            parts.append(errno.errorcode[link.errno])
    return " ".join(parts)


def _raw_text(raw: object) -> str:
    if raw is None:
        return ""
    if isinstance(raw, CommandResult):
        output = raw.stderr.strip() or raw.stdout.strip()
        return f"exit code {raw.exit_code}: {output}"
    if isinstance(raw, BaseException):
        return _exception_text(raw)
    if isinstance(raw, bytes):
        return raw.decode("utf-8", errors="replace")
    return str(raw)


def _exception_kind(raw: object) -> ErrorKind | None:
    if not isinstance(raw, BaseException):
        return None
    for link in _cause_chain(raw):
        for exc_type, kind in _EXCEPTION_KINDS:
            if isinstance(link, exc_type):
                return kind
    return None


def classify(raw: object) -> ClassifiedError:
    """Classify a raw failure report from the encoder boundary.

    Accepts an error string, an exception, a ``CommandResult`` or ``None``.
    Never raises; anything unrecognized becomes
    ``ErrorKind.UNKNOWN_ENCODER_FAILURE`` with the raw text preserved.
    """
    try:
        text = _raw_text(raw)
    except Exception:  # noqa: BLE001 – objects with a broken __str__
        text = f"<unprintable {type(raw).__name__}>"

    cleaned = clean_error_message(text) or None

    kind = _exception_kind(raw)
    if kind is None:
        lowered = text.lower()
        for candidate, patterns in _PATTERNS:
            if any(pattern in lowered for pattern in patterns):
                kind = candidate
                break
        else:
            kind = ErrorKind.UNKNOWN_ENCODER_FAILURE

    return describe(kind, raw=cleaned)
