"""Interface to the privileged execution boundary.

The encoding pipeline never spawns processes or touches the filesystem
itself.  Every such request goes through an :class:`EncoderBoundary`, which
lets a desktop host (or a test double) decide how the work is actually done.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Sequence
from dataclasses import dataclass


@dataclass(frozen=True)
class AvailabilityReport:
    """Result of asking the boundary whether the encoder binary is usable."""

    is_available: bool
    path: str | None = None
    error: str | None = None
    version: str | None = None


@dataclass(frozen=True)
class CommandResult:
    """Captured outcome of one encoder invocation."""

    stdout: str
    stderr: str
    exit_code: int
    timed_out: bool = False

    @property
    def ok(self) -> bool:
        return self.exit_code == 0 and not self.timed_out


class EncoderBoundary(ABC):
    """Narrow request/response surface of the privileged execution context.

    Implementations raise :class:`~lunagif.error_handling.BoundaryUnavailableError`
    from any method when the context cannot be reached at all.
    """

    @abstractmethod
    def check_encoder_availability(self) -> AvailabilityReport:
        """Locate the encoder binary and report whether it can be used."""

    @abstractmethod
    def create_temp_directory(self) -> str:
        """Create a uniquely named empty directory and return its path."""

    @abstractmethod
    def persist_frames(self, frames: Sequence[bytes], directory: str) -> int:
        """Write PNG-encoded *frames* into *directory* in order.

        Frame ``i`` must land in ``frame_{i:04d}.png``.  Returns the number of
        files written; raises ``FrameWriteError`` when any write fails.
        """

    @abstractmethod
    def run_command(self, command: str) -> CommandResult:
        """Execute one encoder command string and capture its output.

        A non-zero exit is reported through the result, not raised.  Raises
        ``ProcessSpawnError`` when the process cannot be started.
        """

    @abstractmethod
    def list_files(self, directory: str) -> int:
        """Return the number of ``frame_*.png`` files in *directory*."""

    @abstractmethod
    def remove_directory(self, path: str) -> None:
        """Recursively delete *path*; best effort."""

    @abstractmethod
    def read_file(self, path: str) -> bytes:
        """Return the contents of the file at *path*."""
