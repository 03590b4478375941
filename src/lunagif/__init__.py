"""lunagif - two-pass FFmpeg GIF encoding for rendered animation frames."""

__version__: str = "0.1.0"

# Public re-exports for convenience ---------------------------------------------------

from .boundary import AvailabilityReport, CommandResult, EncoderBoundary
from .config import DEFAULT_ENCODER_CONFIG, EncodeOptions, EncoderConfig, Quality
from .error_classifier import ClassifiedError, ErrorKind, classify
from .error_handling import (
    BoundaryUnavailableError,
    FrameWriteError,
    GifEncodeError,
    LunaGifError,
    ProcessSpawnError,
    WorkspaceError,
)
from .handler import EncoderStatus, GifEncoderHandler
from .local_boundary import LocalBoundary
from .pipeline import EncodeResult

__all__ = [
    "AvailabilityReport",
    "BoundaryUnavailableError",
    "ClassifiedError",
    "CommandResult",
    "DEFAULT_ENCODER_CONFIG",
    "EncodeOptions",
    "EncodeResult",
    "EncoderBoundary",
    "EncoderConfig",
    "EncoderStatus",
    "ErrorKind",
    "FrameWriteError",
    "GifEncodeError",
    "GifEncoderHandler",
    "LocalBoundary",
    "LunaGifError",
    "ProcessSpawnError",
    "Quality",
    "WorkspaceError",
    "__version__",
    "classify",
]
