import io
from collections.abc import Sequence

import pytest
from PIL import Image

from lunagif.boundary import AvailabilityReport, CommandResult, EncoderBoundary
from lunagif.error_handling import (
    BoundaryUnavailableError,
    FrameWriteError,
    ProcessSpawnError,
    WorkspaceError,
)
from lunagif.frames import frame_filename

FAKE_FFMPEG = "/opt/ffmpeg/bin/ffmpeg"


class FakeBoundary(EncoderBoundary):
    """Recording test double for the privileged boundary.

    Every call is appended to ``calls`` as ``(method, *args)``.  Failures are
    injected through constructor arguments; ``command_results`` is consumed in
    order by ``run_command`` and may contain exceptions to raise.
    """

    def __init__(
        self,
        *,
        available: bool = True,
        path: str | None = FAKE_FFMPEG,
        version: str | None = "6.1.1",
        unreachable: bool = False,
        fail_create: bool = False,
        fail_persist_at: int | None = None,
        file_count: int | None = None,
        command_results: Sequence[CommandResult | Exception] = (),
        fail_remove: bool = False,
        output_bytes: bytes = b"GIF89a\x01\x00\x01\x00",
    ):
        self.available = available
        self.path = path
        self.version = version
        self.unreachable = unreachable
        self.fail_create = fail_create
        self.fail_persist_at = fail_persist_at
        self.file_count = file_count
        self.command_results = list(command_results)
        self.fail_remove = fail_remove
        self.output_bytes = output_bytes

        self.calls: list[tuple] = []
        self.created: list[str] = []
        self.removed: list[str] = []
        self.commands: list[str] = []
        self.persisted: dict[str, dict[str, bytes]] = {}

    def check_encoder_availability(self) -> AvailabilityReport:
        self.calls.append(("check_encoder_availability",))
        if self.unreachable:
            raise BoundaryUnavailableError("no desktop host")
        if not self.available:
            return AvailabilityReport(is_available=False)
        return AvailabilityReport(is_available=True, path=self.path, version=self.version)

    def create_temp_directory(self) -> str:
        self.calls.append(("create_temp_directory",))
        if self.fail_create:
            raise WorkspaceError("mkdir failed: No space left on device")
        path = f"/tmp/luna-animation-{len(self.created) + 1}"
        self.created.append(path)
        return path

    def persist_frames(self, frames, directory):
        self.calls.append(("persist_frames", len(frames), directory))
        written = self.persisted.setdefault(directory, {})
        for index, data in enumerate(frames):
            if index == self.fail_persist_at:
                raise FrameWriteError(f"Saving frame {index} failed: disk error", index=index)
            written[frame_filename(index)] = data
        return len(frames)

    def run_command(self, command: str) -> CommandResult:
        self.calls.append(("run_command", command))
        self.commands.append(command)
        if self.command_results:
            outcome = self.command_results.pop(0)
            if isinstance(outcome, Exception):
                raise outcome
            return outcome
        return CommandResult(stdout="", stderr="", exit_code=0)

    def list_files(self, directory: str) -> int:
        self.calls.append(("list_files", directory))
        if self.file_count is not None:
            return self.file_count
        return len(self.persisted.get(directory, {}))

    def remove_directory(self, path: str) -> None:
        self.calls.append(("remove_directory", path))
        self.removed.append(path)
        if self.fail_remove:
            raise OSError("Directory not empty")

    def read_file(self, path: str) -> bytes:
        self.calls.append(("read_file", path))
        return self.output_bytes

    def method_calls(self, name: str) -> list[tuple]:
        return [call for call in self.calls if call[0] == name]


def _png_bytes(index: int, size: tuple[int, int] = (8, 8)) -> bytes:
    image = Image.new("RGBA", size, ((index * 17) % 256, 64, 255 - (index * 17) % 256, 255))
    buffer = io.BytesIO()
    image.save(buffer, format="PNG")
    return buffer.getvalue()


@pytest.fixture
def make_boundary():
    """Factory for :class:`FakeBoundary` instances."""
    return FakeBoundary


@pytest.fixture
def png_frames():
    """Fifteen distinct 8×8 PNG frames."""
    return [_png_bytes(i) for i in range(15)]


@pytest.fixture
def make_png_frames():
    """Factory returning *n* distinct PNG frames."""

    def _make(n: int, size: tuple[int, int] = (8, 8)) -> list[bytes]:
        return [_png_bytes(i, size) for i in range(n)]

    return _make


@pytest.fixture
def spawn_error():
    """A ProcessSpawnError as raised for a missing executable."""
    cause = FileNotFoundError(2, "No such file or directory")
    return ProcessSpawnError(f"Could not start {FAKE_FFMPEG}: ENOENT", cause=cause)
