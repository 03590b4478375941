"""In-process implementation of the privileged execution boundary.

Used when lunagif runs with direct filesystem and process access (scripts,
desktop backends, integration tests).  Hosts that sandbox the encoder behind
IPC provide their own :class:`~lunagif.boundary.EncoderBoundary` instead.
"""

from __future__ import annotations

import logging
import shutil
import tempfile
import time
from collections.abc import Sequence
from pathlib import Path

from .boundary import AvailabilityReport, CommandResult, EncoderBoundary
from .config import DEFAULT_ENCODER_CONFIG, FRAME_EXTENSION, FRAME_PREFIX, EncoderConfig
from .error_handling import FrameWriteError, LunaGifError, WorkspaceError, error_context
from .external_engines.common import run_command
from .frames import frame_filename
from .system_tools import discover_tool

logger = logging.getLogger(__name__)


class LocalBoundary(EncoderBoundary):
    """Runs FFmpeg with :mod:`subprocess` and uses the local filesystem."""

    def __init__(self, encoder_config: EncoderConfig | None = None):
        self.config = encoder_config or DEFAULT_ENCODER_CONFIG

    def check_encoder_availability(self) -> AvailabilityReport:
        try:
            info = discover_tool("ffmpeg", self.config)
        except OSError as e:
            logger.error(f"Error while looking for FFmpeg: {e}")
            return AvailabilityReport(is_available=False, error=str(e))

        if info.available:
            logger.info(f"✅ Found FFmpeg: {info.path}")
        else:
            logger.info("❌ FFmpeg not found")
        return AvailabilityReport(
            is_available=info.available, path=info.path, version=info.version
        )

    def create_temp_directory(self) -> str:
        prefix = f"{self.config.TEMP_DIR_PREFIX}{int(time.time() * 1000)}-"
        with error_context("create temporary directory", WorkspaceError, logger=logger):
            return tempfile.mkdtemp(prefix=prefix)

    def persist_frames(self, frames: Sequence[bytes], directory: str) -> int:
        target = Path(directory)
        with error_context("prepare frame directory", FrameWriteError, logger=logger):
            target.mkdir(parents=True, exist_ok=True)

        for index, data in enumerate(frames):
            path = target / frame_filename(index)
            try:
                path.write_bytes(data)
            except OSError as e:
                raise FrameWriteError(
                    f"Saving frame {index} to {path} failed: {e}", index=index, cause=e
                ) from e
            logger.debug(f"Saved frame {index + 1}/{len(frames)}: {path.name} ({len(data)} bytes)")

        return len(frames)

    def run_command(self, command: str) -> CommandResult:
        return run_command(command, timeout=self.config.command_timeout)

    def list_files(self, directory: str) -> int:
        target = Path(directory)
        if not target.is_dir():
            raise WorkspaceError(f"Temporary directory does not exist: {directory}")
        with error_context("list frame files", WorkspaceError, logger=logger):
            return sum(1 for _ in target.glob(f"{FRAME_PREFIX}*.{FRAME_EXTENSION}"))

    def remove_directory(self, path: str) -> None:
        try:
            shutil.rmtree(path)
        except FileNotFoundError:
            pass

    def read_file(self, path: str) -> bytes:
        with error_context("read encoded output", LunaGifError, logger=logger):
            return Path(path).read_bytes()
