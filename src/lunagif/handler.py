"""Caller-facing GIF encoder handler.

:class:`GifEncoderHandler` ties the pipeline together::

    availability probe -> acquire workspace -> materialize frames
        -> count frames -> build commands -> two-pass encode -> release workspace

Every failure comes back as an :class:`~lunagif.pipeline.EncodeResult` carrying
a classified error; nothing is retried.  One encode at a time per handler:
callers that may trigger concurrent exports must serialize them.
"""

from __future__ import annotations

import logging
import os
import threading
from collections.abc import Sequence
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass

from .boundary import AvailabilityReport, EncoderBoundary
from .config import DEFAULT_FPS, EncodeOptions, Quality
from .error_classifier import ErrorKind, classify, describe
from .error_handling import (
    BoundaryUnavailableError,
    FrameWriteError,
    GifEncodeError,
    LunaGifError,
    WorkspaceError,
    clean_error_message,
)
from .external_engines.ffmpeg import build_commands, to_forward_slashes
from .frames import Frame, FrameMaterializer
from .local_boundary import LocalBoundary
from .pipeline import EncodeResult, TwoPassOrchestrator
from .workspace import Workspace, WorkspaceManager

logger = logging.getLogger(__name__)

__all__ = [
    "EncoderHandle",
    "EncoderStatus",
    "GifEncoderHandler",
]

SCRATCH_OUTPUT_NAME = "output.gif"


@dataclass(frozen=True)
class EncoderHandle:
    """The resolved encoder.  Replaced wholesale by the probe, never mutated."""

    path: str | None = None
    available: bool = False
    error: str | None = None
    version: str | None = None
    resolved: bool = False


@dataclass(frozen=True)
class EncoderStatus:
    available: bool
    path: str | None
    version: str | None = None


class GifEncoderHandler:
    """Converts ordered frame sequences into GIF files with FFmpeg.

    Args:
        boundary: Privileged execution boundary; defaults to :class:`LocalBoundary`.
        separator: Path separator for the frame input pattern (host default).
        probe_in_background: Start the availability probe on a worker thread at
            construction.  When ``False`` the probe runs on first use.
    """

    def __init__(
        self,
        boundary: EncoderBoundary | None = None,
        *,
        separator: str = os.sep,
        probe_in_background: bool = True,
    ):
        self._boundary = boundary if boundary is not None else LocalBoundary()
        self._separator = separator
        self._workspaces = WorkspaceManager(self._boundary)
        self._materializer = FrameMaterializer(self._boundary)
        self._lock = threading.RLock()
        self.handle = EncoderHandle()
        self._probe_future: Future[AvailabilityReport] | None = (
            self._start_probe() if probe_in_background else None
        )

    # ------------------------------------------------------------------
    # Availability
    # ------------------------------------------------------------------

    def _probe(self) -> AvailabilityReport:
        try:
            return self._boundary.check_encoder_availability()
        except BoundaryUnavailableError:
            logger.info("🌐 No encoder boundary in this environment; GIF export disabled")
            return AvailabilityReport(is_available=False)
        except (LunaGifError, OSError) as e:
            logger.error(f"Error while checking FFmpeg availability: {e}")
            return AvailabilityReport(is_available=False, error=str(e))

    def _start_probe(self) -> Future[AvailabilityReport]:
        executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="lunagif-probe")
        try:
            return executor.submit(self._probe)
        finally:
            executor.shutdown(wait=False)

    def ensure_ready(self) -> bool:
        """Block until the availability probe has resolved; return availability.

        The probe runs at most once per handler; later calls return the
        memoized result.
        """
        with self._lock:
            if not self.handle.resolved:
                if self._probe_future is not None:
                    report = self._probe_future.result()
                    self._probe_future = None
                else:
                    report = self._probe()

                available = report.is_available and bool(report.path)
                self.handle = EncoderHandle(
                    path=report.path if available else None,
                    available=available,
                    error=report.error,
                    version=report.version,
                    resolved=True,
                )
            return self.handle.available

    def reinitialize(self) -> bool:
        """Forget the memoized probe result and probe again."""
        with self._lock:
            self.handle = EncoderHandle()
            self._probe_future = None
            return self.ensure_ready()

    def get_status(self) -> EncoderStatus:
        self.ensure_ready()
        handle = self.handle
        return EncoderStatus(available=handle.available, path=handle.path, version=handle.version)

    # ------------------------------------------------------------------
    # Encoding
    # ------------------------------------------------------------------

    def _failed(
        self, output_path: str, kind: ErrorKind, raw: object = None, **kwargs
    ) -> EncodeResult:
        error = describe(kind, raw=clean_error_message(str(raw)) if raw else None)
        logger.error(f"❌ GIF conversion failed: {error.message} ({error.raw or 'no details'})")
        return EncodeResult.failed(output_path, error, **kwargs)

    def _encode_in(
        self,
        workspace: Workspace,
        frames: Sequence[Frame],
        output_path: str,
        options: EncodeOptions,
        encoder_path: str,
    ) -> EncodeResult:
        try:
            frame_count = self._materializer.materialize(frames, workspace)
        except FrameWriteError as e:
            return self._failed(output_path, ErrorKind.FRAME_WRITE_FAILED, e)

        try:
            found = self._boundary.list_files(workspace.path)
        except (LunaGifError, OSError) as e:
            return self._failed(output_path, ErrorKind.EMPTY_INPUT_DIRECTORY, e)
        if found == 0:
            return self._failed(
                output_path,
                ErrorKind.EMPTY_INPUT_DIRECTORY,
                f"No frame files in {workspace.path}",
            )
        logger.info(f"📁 {found} PNG frames ready in {workspace.path}")

        try:
            commands = build_commands(
                workspace.path,
                output_path,
                options,
                encoder_path=encoder_path,
                separator=self._separator,
            )
        except ValueError as e:
            return self._failed(
                output_path, ErrorKind.INVALID_ARGUMENTS, e, frame_count=frame_count
            )

        outcome = TwoPassOrchestrator(self._boundary).run(commands)
        if outcome.error is not None:
            return EncodeResult.failed(
                output_path, outcome.error, commands=commands, frame_count=frame_count
            )

        return EncodeResult(
            success=True,
            output_path=output_path,
            commands=commands,
            frame_count=frame_count,
            render_ms=outcome.render_ms,
        )

    def convert(
        self,
        frames: Sequence[Frame],
        output_path: str | os.PathLike[str],
        options: EncodeOptions | None = None,
    ) -> EncodeResult:
        """Encode *frames* into a GIF at *output_path*.

        Returns:
            A successful :class:`EncodeResult`, or one carrying a classified
            error.  The working directory is removed before this returns.
        """
        options = options or EncodeOptions()
        output = os.fspath(output_path)

        available = self.ensure_ready()
        encoder_path = self.handle.path
        if not available or encoder_path is None:
            return self._failed(output, ErrorKind.ENCODER_UNAVAILABLE, self.handle.error)

        frames = list(frames)
        if not frames:
            return self._failed(output, ErrorKind.EMPTY_INPUT_DIRECTORY, "No frames supplied")

        logger.info(
            f"🎞️ Converting {len(frames)} frames to {output} "
            f"(fps={options.fps}, quality={options.quality.value})"
        )
        try:
            with self._workspaces.session() as workspace:
                result = self._encode_in(workspace, frames, output, options, encoder_path)
        except WorkspaceError as e:
            return self._failed(output, ErrorKind.WORKSPACE_CREATION_FAILED, e)

        if result.success:
            logger.info(f"✅ GIF written to {output}")
        return result

    def quick_convert(
        self,
        frames: Sequence[Frame],
        output_path: str | os.PathLike[str],
        fps: int = DEFAULT_FPS,
    ) -> EncodeResult:
        """:meth:`convert` with medium quality, transparency and looping."""
        options = EncodeOptions(fps=fps, quality=Quality.MEDIUM, transparent=True, loop=True)
        return self.convert(frames, output_path, options)

    def convert_to_bytes(
        self, frames: Sequence[Frame], options: EncodeOptions | None = None
    ) -> bytes:
        """Encode *frames* and return the GIF file contents.

        The GIF is written to a scratch workspace, read back through the
        boundary, and the scratch workspace is removed.

        Raises:
            GifEncodeError: the encode failed; ``.error`` holds the classification.
        """
        if not self.ensure_ready():
            raise GifEncodeError(describe(ErrorKind.ENCODER_UNAVAILABLE, raw=self.handle.error))

        try:
            with self._workspaces.session() as scratch:
                output = f"{to_forward_slashes(scratch.path)}/{SCRATCH_OUTPUT_NAME}"
                result = self.convert(frames, output, options)
                result.raise_for_error()
                try:
                    return self._boundary.read_file(output)
                except (LunaGifError, OSError) as e:
                    raise GifEncodeError(classify(e)) from e
        except WorkspaceError as e:
            error = describe(
                ErrorKind.WORKSPACE_CREATION_FAILED, raw=clean_error_message(str(e))
            )
            raise GifEncodeError(error) from e
