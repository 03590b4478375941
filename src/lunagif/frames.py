"""Frame normalization and materialization.

Frames arrive from the renderer in whatever form it produced them and are
converted to PNG bytes before being handed to the boundary, which writes frame
``i`` to ``frame_{i:04d}.png`` inside the workspace.
"""

from __future__ import annotations

import base64
import binascii
import io
import logging
from collections.abc import Mapping, Sequence
from typing import Any, Union

import numpy as np
from PIL import Image

from .boundary import EncoderBoundary
from .config import FRAME_EXTENSION, FRAME_INDEX_WIDTH, FRAME_PREFIX
from .error_handling import FrameWriteError, LunaGifError
from .workspace import Workspace

logger = logging.getLogger(__name__)

__all__ = [
    "Frame",
    "FrameMaterializer",
    "PNG_SIGNATURE",
    "frame_filename",
    "frame_to_png_bytes",
]

Frame = Union[bytes, bytearray, memoryview, str, Image.Image, np.ndarray, Mapping[str, Any]]

PNG_SIGNATURE = b"\x89PNG\r\n\x1a\n"
DATA_URL_PREFIX = "data:image/png;base64,"

# Renderer frame records carry the image under this key (or attribute).
DATA_URL_FIELD = "dataURL"


def frame_filename(index: int) -> str:
    """Return the zero-padded file name for the frame at *index*."""
    if index < 0:
        raise ValueError(f"frame index must be non-negative, got {index}")
    return f"{FRAME_PREFIX}{index:0{FRAME_INDEX_WIDTH}d}.{FRAME_EXTENSION}"


def _check_png(data: bytes, index: int) -> bytes:
    if not data.startswith(PNG_SIGNATURE):
        raise FrameWriteError(
            f"Frame {index} is not a valid PNG image (signature {data[:8].hex() or 'empty'})",
            index=index,
        )
    return data


def _encode_image(image: Image.Image, index: int) -> bytes:
    buffer = io.BytesIO()
    try:
        if image.mode not in ("RGB", "RGBA", "L", "LA", "P"):
            image = image.convert("RGBA")
        image.save(buffer, format="PNG")
    except (OSError, ValueError) as e:
        raise FrameWriteError(
            f"Frame {index} could not be encoded as PNG: {e}", index=index, cause=e
        ) from e
    return buffer.getvalue()


def _array_to_image(array: np.ndarray, index: int) -> Image.Image:
    if array.dtype != np.uint8:
        raise FrameWriteError(
            f"Frame {index} array must be uint8, got {array.dtype}", index=index
        )
    if array.ndim == 2 or (array.ndim == 3 and array.shape[2] in (3, 4)):
        return Image.fromarray(array)
    raise FrameWriteError(
        f"Frame {index} array must be HxW, HxWx3 or HxWx4, got shape {array.shape}",
        index=index,
    )


def frame_to_png_bytes(frame: Frame, index: int = 0) -> bytes:
    """Normalize one frame to PNG-encoded bytes.

    Accepts PNG bytes, a ``data:image/png;base64,`` URL, a PIL image, a
    uint8 numpy array, or a renderer frame record (mapping or object) with a
    ``dataURL`` field.  Raises :class:`FrameWriteError` for anything else.
    """
    if isinstance(frame, Mapping):
        if DATA_URL_FIELD not in frame:
            raise FrameWriteError(
                f"Frame {index} record has no {DATA_URL_FIELD!r} field", index=index
            )
        frame = frame[DATA_URL_FIELD]
    elif hasattr(frame, DATA_URL_FIELD):
        frame = getattr(frame, DATA_URL_FIELD)

    if isinstance(frame, (bytes, bytearray, memoryview)):
        return _check_png(bytes(frame), index)

    if isinstance(frame, str):
        if not frame.startswith(DATA_URL_PREFIX):
            raise FrameWriteError(
                f"Frame {index} data URL is not a base64 PNG: {frame[:50]!r}", index=index
            )
        try:
            data = base64.b64decode(frame[len(DATA_URL_PREFIX):], validate=True)
        except (binascii.Error, ValueError) as e:
            raise FrameWriteError(
                f"Frame {index} base64 decoding failed: {e}", index=index, cause=e
            ) from e
        return _check_png(data, index)

    if isinstance(frame, Image.Image):
        return _encode_image(frame, index)

    if isinstance(frame, np.ndarray):
        return _encode_image(_array_to_image(frame, index), index)

    raise FrameWriteError(
        f"Frame {index} has unsupported type {type(frame).__name__}", index=index
    )


class FrameMaterializer:
    """Persists an ordered frame sequence into a workspace through the boundary."""

    def __init__(self, boundary: EncoderBoundary):
        self._boundary = boundary

    def materialize(self, frames: Sequence[Frame], workspace: Workspace) -> int:
        """Write *frames* into *workspace* as ``frame_0000.png``, ``frame_0001.png``, …

        Input order is preserved exactly.  Files already written when a later
        frame fails are left for workspace cleanup.

        Returns:
            Number of frames written.

        Raises:
            FrameWriteError: a frame could not be normalized or written.
        """
        encoded = [frame_to_png_bytes(frame, index) for index, frame in enumerate(frames)]

        logger.info(f"💾 Writing {len(encoded)} frames to {workspace.path}")
        try:
            written = self._boundary.persist_frames(encoded, workspace.path)
        except FrameWriteError:
            raise
        except (LunaGifError, OSError) as e:
            raise FrameWriteError(f"Saving frames failed: {e}", cause=e) from e

        if written != len(encoded):
            raise FrameWriteError(
                f"Expected to write {len(encoded)} frames, boundary reported {written}"
            )
        return written
