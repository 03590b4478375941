"""End-to-end tests for GifEncoderHandler against a recording boundary."""

import threading

import pytest

from lunagif.boundary import AvailabilityReport, CommandResult
from lunagif.config import EncodeOptions
from lunagif.error_classifier import ErrorKind
from lunagif.error_handling import GifEncodeError, ProcessSpawnError
from lunagif.handler import EncoderStatus, GifEncoderHandler

FAKE_FFMPEG = "/opt/ffmpeg/bin/ffmpeg"

OUTPUT = "/home/luna/exports/bounce.gif"

OK = CommandResult(stdout="", stderr="", exit_code=0)


def _handler(boundary, **kwargs) -> GifEncoderHandler:
    return GifEncoderHandler(boundary, separator="/", probe_in_background=False, **kwargs)


def _assert_balanced(boundary):
    assert len(boundary.method_calls("create_temp_directory")) == len(boundary.created)
    assert sorted(boundary.removed) == sorted(boundary.created)


class TestSuccessfulConversion:
    def test_fifteen_frames_default_options(self, make_boundary, png_frames):
        boundary = make_boundary()
        handler = _handler(boundary)

        result = handler.convert(
            png_frames, OUTPUT, EncodeOptions(fps=15, quality="medium", transparent=True, loop=True)
        )

        assert result.success
        assert result.error is None
        assert result.output_path == OUTPUT
        assert result.frame_count == 15
        assert boundary.commands == [
            f'"{FAKE_FFMPEG}" -y -framerate 15 -i "/tmp/luna-animation-1/frame_%04d.png" '
            '-vf palettegen=max_colors=256:stats_mode=diff:reserve_transparent=1 '
            '"/tmp/luna-animation-1/palette.png"',
            f'"{FAKE_FFMPEG}" -y -framerate 15 -i "/tmp/luna-animation-1/frame_%04d.png" '
            '-i "/tmp/luna-animation-1/palette.png" '
            "-lavfi paletteuse=dither=bayer:bayer_scale=5:diff_mode=rectangle:alpha_threshold=128 "
            f'-loop 0 "{OUTPUT}"',
        ]
        assert boundary.removed == ["/tmp/luna-animation-1"]

    def test_call_order(self, make_boundary, png_frames):
        boundary = make_boundary()

        _handler(boundary).convert(png_frames, OUTPUT)

        assert [call[0] for call in boundary.calls] == [
            "check_encoder_availability",
            "create_temp_directory",
            "persist_frames",
            "list_files",
            "run_command",
            "run_command",
            "remove_directory",
        ]

    def test_frames_written_with_contiguous_names(self, make_boundary, png_frames):
        boundary = make_boundary()

        _handler(boundary).convert(png_frames, OUTPUT)

        assert sorted(boundary.persisted["/tmp/luna-animation-1"]) == [
            f"frame_{i:04d}.png" for i in range(15)
        ]

    def test_quick_convert_uses_defaults(self, make_boundary, png_frames):
        boundary = make_boundary()

        result = _handler(boundary).quick_convert(png_frames, OUTPUT, fps=12)

        assert result.success
        palette_command, gif_command = boundary.commands
        assert "-framerate 12" in palette_command
        assert "max_colors=256" in palette_command
        assert "reserve_transparent=1" in palette_command
        assert " -loop 0 " in gif_command

    def test_repeated_calls_differ_only_by_workspace(self, make_boundary, png_frames):
        boundary = make_boundary()
        handler = _handler(boundary)

        first = handler.convert(png_frames, OUTPUT)
        second = handler.convert(png_frames, OUTPUT)

        assert first.commands.palette_command.replace("luna-animation-1", "<ws>") == (
            second.commands.palette_command.replace("luna-animation-2", "<ws>")
        )
        assert first.commands.gif_command.replace("luna-animation-1", "<ws>") == (
            second.commands.gif_command.replace("luna-animation-2", "<ws>")
        )
        _assert_balanced(boundary)

    def test_path_like_output(self, make_boundary, png_frames, tmp_path):
        boundary = make_boundary()
        output = tmp_path / "anim.gif"

        result = _handler(boundary).convert(png_frames, output)

        assert result.output_path == str(output)


class TestEncoderUnavailable:
    def test_no_workspace_when_unavailable(self, make_boundary, png_frames):
        boundary = make_boundary(available=False)

        result = _handler(boundary).convert(png_frames, OUTPUT)

        assert not result.success
        assert result.error.kind is ErrorKind.ENCODER_UNAVAILABLE
        assert boundary.method_calls("create_temp_directory") == []
        assert boundary.commands == []

    def test_unreachable_boundary(self, make_boundary, png_frames):
        boundary = make_boundary(unreachable=True)
        handler = _handler(boundary)

        result = handler.convert(png_frames, OUTPUT)

        assert result.error.kind is ErrorKind.ENCODER_UNAVAILABLE
        assert handler.handle.available is False
        assert handler.handle.error is None

    def test_available_without_path_is_unavailable(self, make_boundary):
        boundary = make_boundary(path=None)

        assert _handler(boundary).ensure_ready() is False

    def test_convert_without_encoder_path(self, make_boundary, png_frames):
        boundary = make_boundary(path=None)

        result = _handler(boundary).convert(png_frames, OUTPUT)

        assert result.error.kind is ErrorKind.ENCODER_UNAVAILABLE
        assert boundary.method_calls("create_temp_directory") == []

    def test_probe_error_is_recorded(self, make_boundary, png_frames):
        boundary = make_boundary()

        def _explode():
            raise OSError("pipe closed")

        boundary.check_encoder_availability = _explode
        handler = _handler(boundary)

        result = handler.convert(png_frames, OUTPUT)

        assert result.error.kind is ErrorKind.ENCODER_UNAVAILABLE
        assert "pipe closed" in result.error.raw

    def test_convert_to_bytes_raises(self, make_boundary, png_frames):
        boundary = make_boundary(available=False)

        with pytest.raises(GifEncodeError) as exc_info:
            _handler(boundary).convert_to_bytes(png_frames)

        assert exc_info.value.kind is ErrorKind.ENCODER_UNAVAILABLE


class TestFrameWriteFailure:
    def test_failure_at_frame_seven(self, make_boundary, png_frames):
        boundary = make_boundary(fail_persist_at=7)

        result = _handler(boundary).convert(png_frames, OUTPUT)

        assert not result.success
        assert result.error.kind is ErrorKind.FRAME_WRITE_FAILED
        assert "frame 7" in result.error.raw
        assert boundary.commands == []
        assert boundary.removed == ["/tmp/luna-animation-1"]

    def test_invalid_frame_data(self, make_boundary, png_frames):
        boundary = make_boundary()
        frames = list(png_frames)
        frames[2] = b"JFIF"

        result = _handler(boundary).convert(frames, OUTPUT)

        assert result.error.kind is ErrorKind.FRAME_WRITE_FAILED
        _assert_balanced(boundary)


class TestEncoderFailures:
    def test_permission_denied_on_second_pass(self, make_boundary, png_frames):
        boundary = make_boundary(
            command_results=[
                OK,
                CommandResult(
                    stdout="",
                    stderr=f"[image2 @ 0x55] {OUTPUT}: Permission denied",
                    exit_code=1,
                ),
            ]
        )

        result = _handler(boundary).convert(png_frames, OUTPUT)

        assert not result.success
        assert result.error.kind is ErrorKind.PERMISSION_DENIED
        assert result.error.hint == "Run as administrator or check file permissions."
        assert len(boundary.commands) == 2
        assert boundary.removed == ["/tmp/luna-animation-1"]

    def test_palette_failure_skips_gif_pass(self, make_boundary, png_frames):
        boundary = make_boundary(
            command_results=[CommandResult(stdout="", stderr="Invalid argument", exit_code=22)]
        )

        result = _handler(boundary).convert(png_frames, OUTPUT)

        assert result.error.kind is ErrorKind.INVALID_ARGUMENTS
        assert len(boundary.commands) == 1
        assert result.commands is not None
        _assert_balanced(boundary)

    def test_missing_binary(self, make_boundary, png_frames, spawn_error):
        boundary = make_boundary(command_results=[spawn_error])

        result = _handler(boundary).convert(png_frames, OUTPUT)

        assert result.error.kind is ErrorKind.MISSING_BINARY
        _assert_balanced(boundary)

    def test_unrecognized_failure(self, make_boundary, png_frames):
        boundary = make_boundary(
            command_results=[OK, CommandResult(stdout="", stderr="Conversion failed!", exit_code=1)]
        )

        result = _handler(boundary).convert(png_frames, OUTPUT)

        assert result.error.kind is ErrorKind.UNKNOWN_ENCODER_FAILURE
        assert "Conversion failed!" in result.error.raw

    def test_convert_to_bytes_raises_classified_error(self, make_boundary, png_frames):
        boundary = make_boundary(
            command_results=[CommandResult(stdout="", stderr="Permission denied", exit_code=1)]
        )

        with pytest.raises(GifEncodeError) as exc_info:
            _handler(boundary).convert_to_bytes(png_frames)

        assert exc_info.value.kind is ErrorKind.PERMISSION_DENIED
        _assert_balanced(boundary)

    def test_unquotable_output_path(self, make_boundary, png_frames):
        boundary = make_boundary()
        handler = GifEncoderHandler(boundary, separator="\\", probe_in_background=False)

        result = handler.convert(png_frames, 'C:\\out\\say"hi.gif')

        assert result.error.kind is ErrorKind.INVALID_ARGUMENTS
        assert result.frame_count == 15
        assert boundary.commands == []
        _assert_balanced(boundary)


class TestWorkspaceFailures:
    def test_workspace_creation_failed(self, make_boundary, png_frames):
        boundary = make_boundary(fail_create=True)

        result = _handler(boundary).convert(png_frames, OUTPUT)

        assert result.error.kind is ErrorKind.WORKSPACE_CREATION_FAILED
        assert "No space left" in result.error.raw
        assert boundary.removed == []
        assert boundary.commands == []

    def test_empty_frame_list(self, make_boundary):
        boundary = make_boundary()

        result = _handler(boundary).convert([], OUTPUT)

        assert result.error.kind is ErrorKind.EMPTY_INPUT_DIRECTORY
        assert boundary.method_calls("create_temp_directory") == []

    def test_no_files_found_after_write(self, make_boundary, png_frames):
        boundary = make_boundary(file_count=0)

        result = _handler(boundary).convert(png_frames, OUTPUT)

        assert result.error.kind is ErrorKind.EMPTY_INPUT_DIRECTORY
        assert boundary.commands == []
        _assert_balanced(boundary)

    def test_cleanup_failure_does_not_change_result(self, make_boundary, png_frames):
        boundary = make_boundary(fail_remove=True)

        result = _handler(boundary).convert(png_frames, OUTPUT)

        assert result.success
        assert boundary.removed == ["/tmp/luna-animation-1"]


class TestWorkspaceBalance:
    @pytest.mark.parametrize(
        "kwargs",
        [
            {},
            {"fail_persist_at": 0},
            {"fail_persist_at": 14},
            {"file_count": 0},
            {"fail_remove": True},
            {"command_results": [CommandResult(stdout="", stderr="EPERM", exit_code=1)]},
            {"command_results": [OK, CommandResult(stdout="", stderr="x", exit_code=1)]},
            {"command_results": [ProcessSpawnError("spawn ffmpeg ENOENT")]},
        ],
    )
    def test_every_acquire_is_released(self, make_boundary, png_frames, kwargs):
        boundary = make_boundary(**kwargs)

        _handler(boundary).convert(png_frames, OUTPUT)

        assert len(boundary.created) == 1
        _assert_balanced(boundary)


class TestReadiness:
    def test_probe_runs_once(self, make_boundary, png_frames):
        boundary = make_boundary()
        handler = _handler(boundary)

        handler.ensure_ready()
        handler.convert(png_frames, OUTPUT)
        handler.convert(png_frames, OUTPUT)

        assert len(boundary.method_calls("check_encoder_availability")) == 1

    def test_background_probe(self, make_boundary):
        boundary = make_boundary()
        handler = GifEncoderHandler(boundary, separator="/")

        assert handler.ensure_ready() is True
        assert handler.handle.path == FAKE_FFMPEG
        assert len(boundary.method_calls("check_encoder_availability")) == 1

    def test_background_probe_is_awaited(self, make_boundary):
        gate = threading.Event()
        boundary = make_boundary()
        original = boundary.check_encoder_availability

        def _slow_probe() -> AvailabilityReport:
            gate.wait(timeout=5)
            return original()

        boundary.check_encoder_availability = _slow_probe
        handler = GifEncoderHandler(boundary, separator="/")
        assert handler.handle.resolved is False

        gate.set()

        assert handler.ensure_ready() is True

    def test_reinitialize_probes_again(self, make_boundary):
        boundary = make_boundary(available=False)
        handler = _handler(boundary)
        assert handler.ensure_ready() is False

        boundary.available = True

        assert handler.reinitialize() is True
        assert len(boundary.method_calls("check_encoder_availability")) == 2

    def test_get_status(self, make_boundary):
        status = _handler(make_boundary()).get_status()

        assert status == EncoderStatus(available=True, path=FAKE_FFMPEG, version="6.1.1")

    def test_get_status_unavailable(self, make_boundary):
        status = _handler(make_boundary(available=False)).get_status()

        assert status.available is False
        assert status.path is None


class TestConvertToBytes:
    def test_returns_gif_bytes(self, make_boundary, png_frames):
        boundary = make_boundary(output_bytes=b"GIF89a-data")

        data = _handler(boundary).convert_to_bytes(png_frames)

        assert data == b"GIF89a-data"
        scratch = boundary.created[0]
        assert boundary.method_calls("read_file") == [("read_file", f"{scratch}/output.gif")]
        assert boundary.commands[1].endswith(f'"{scratch}/output.gif"')
        _assert_balanced(boundary)
