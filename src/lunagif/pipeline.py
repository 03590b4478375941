"""Two-pass encoder orchestration.

Runs the palette generation command, then (only if that succeeded) the
palette application command.  Each stage is a single request/response exchange
with the boundary; nothing is retried.

    IDLE -> PALETTE_GENERATING -> GIF_GENERATING -> DONE
                     \\                  \\
                      +-> FAILED          +-> FAILED
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from enum import Enum

from .boundary import CommandResult, EncoderBoundary
from .error_classifier import ClassifiedError, classify
from .error_handling import GifEncodeError, LunaGifError
from .external_engines.ffmpeg import CommandPair

logger = logging.getLogger(__name__)

__all__ = [
    "EncodeResult",
    "PipelineState",
    "StageOutcome",
    "TwoPassOrchestrator",
]


class PipelineState(str, Enum):
    IDLE = "idle"
    PALETTE_GENERATING = "palette_generating"
    GIF_GENERATING = "gif_generating"
    DONE = "done"
    FAILED = "failed"


@dataclass(frozen=True)
class StageOutcome:
    """What the orchestrator reports back after running both stages."""

    state: PipelineState
    results: tuple[CommandResult, ...] = ()
    failed_stage: PipelineState | None = None
    error: ClassifiedError | None = None
    render_ms: int = 0

    @property
    def success(self) -> bool:
        return self.state is PipelineState.DONE


@dataclass(frozen=True)
class EncodeResult:
    """Outcome of one encode call; either success or a classified error."""

    success: bool
    output_path: str
    error: ClassifiedError | None = None
    commands: CommandPair | None = None
    frame_count: int = 0
    render_ms: int = 0

    @classmethod
    def failed(
        cls,
        output_path: str,
        error: ClassifiedError,
        *,
        commands: CommandPair | None = None,
        frame_count: int = 0,
    ) -> EncodeResult:
        return cls(
            success=False,
            output_path=output_path,
            error=error,
            commands=commands,
            frame_count=frame_count,
        )

    def raise_for_error(self) -> None:
        """Raise :class:`GifEncodeError` if this result is a failure."""
        if not self.success and self.error is not None:
            raise GifEncodeError(self.error)


class TwoPassOrchestrator:
    """Sequences the palette and GIF stages for a single encode call.

    An orchestrator is single-use: create one per call.
    """

    def __init__(self, boundary: EncoderBoundary):
        self._boundary = boundary
        self.state = PipelineState.IDLE
        self.history: list[PipelineState] = [PipelineState.IDLE]

    def _transition(self, state: PipelineState) -> None:
        logger.debug(f"Pipeline state {self.state.value} -> {state.value}")
        self.state = state
        self.history.append(state)

    def _execute(self, command: str) -> tuple[CommandResult | None, ClassifiedError | None]:
        logger.debug(f"Running: {command}")
        try:
            result = self._boundary.run_command(command)
        except (LunaGifError, OSError) as e:
            return None, classify(e)

        if not result.ok:
            return result, classify(result)
        return result, None

    def _fail(
        self, results: list[CommandResult], error: ClassifiedError, start: float
    ) -> StageOutcome:
        failed_stage = self.state
        self._transition(PipelineState.FAILED)
        logger.error(
            f"❌ {failed_stage.value} failed: {error.message} ({error.raw or 'no details'})"
        )
        return StageOutcome(
            state=PipelineState.FAILED,
            results=tuple(results),
            failed_stage=failed_stage,
            error=error,
            render_ms=int((time.perf_counter() - start) * 1000),
        )

    def run(self, commands: CommandPair) -> StageOutcome:
        """Execute both stages in order and report a single outcome."""
        if self.state is not PipelineState.IDLE:
            raise RuntimeError(f"Orchestrator already ran (state: {self.state.value})")

        start = time.perf_counter()
        results: list[CommandResult] = []

        self._transition(PipelineState.PALETTE_GENERATING)
        logger.info("🎬 Generating palette...")
        result, error = self._execute(commands.palette_command)
        if result is not None:
            results.append(result)
        if error is not None:
            return self._fail(results, error, start)

        self._transition(PipelineState.GIF_GENERATING)
        logger.info("🎬 Generating GIF...")
        result, error = self._execute(commands.gif_command)
        if result is not None:
            results.append(result)
        if error is not None:
            return self._fail(results, error, start)

        self._transition(PipelineState.DONE)
        render_ms = int((time.perf_counter() - start) * 1000)
        logger.info(f"✅ Two-pass encode finished in {render_ms} ms")
        return StageOutcome(
            state=PipelineState.DONE, results=tuple(results), render_ms=render_ms
        )
