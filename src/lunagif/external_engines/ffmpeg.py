"""FFmpeg command construction for two-pass GIF encoding.

Everything here is pure: functions take paths and options and return command
strings without touching the filesystem.  Execution order is the caller's
concern.

Path convention
---------------
The frame input pattern keeps the host's native separator, because FFmpeg's
image2 demuxer expands ``%04d`` against the literal path it receives.  Every
other path (encoder binary, palette artifact, output file) is normalized to
forward slashes.  All paths are double-quoted for the splitting rules of
:func:`~lunagif.external_engines.common.split_command`: POSIX hosts escape
embedded ``"`` and ``\\``; Windows paths cannot contain ``"`` and are
quoted verbatim.
"""

from __future__ import annotations

import os
from dataclasses import dataclass

from ..config import (
    FRAME_PATTERN,
    PALETTE_FILENAME,
    PALETTEGEN_FILTERS,
    PALETTEGEN_TRANSPARENCY,
    PALETTEUSE_FILTER,
    PALETTEUSE_TRANSPARENCY,
    EncodeOptions,
    Quality,
)

__all__ = [
    "CommandPair",
    "build_commands",
    "frame_input_pattern",
    "palette_path",
    "palettegen_filter",
    "paletteuse_filter",
    "to_forward_slashes",
]

StrPath = str | os.PathLike[str]


@dataclass(frozen=True)
class CommandPair:
    """The two encoder invocations of one encode call."""

    palette_command: str
    gif_command: str


def to_forward_slashes(path: StrPath) -> str:
    return os.fspath(path).replace("\\", "/")


def _quote(path: str, separator: str = os.sep) -> str:
    """Double-quote *path* so that :func:`split_command` yields it unchanged."""
    if separator == "\\":
        if '"' in path:
            raise ValueError(f"Invalid argument: Windows paths cannot contain '\"': {path!r}")
        return f'"{path}"'
    escaped = path.replace("\\", "\\\\").replace('"', '\\"')
    return f'"{escaped}"'


def _trim_trailing_separator(directory: str) -> str:
    trimmed = directory.rstrip("\\/")
    return trimmed or directory


def frame_input_pattern(workspace_dir: StrPath, separator: str = os.sep) -> str:
    """Return ``<workspace><sep>frame_%04d.png`` using the native separator."""
    return f"{_trim_trailing_separator(os.fspath(workspace_dir))}{separator}{FRAME_PATTERN}"


def palette_path(workspace_dir: StrPath) -> str:
    """Return the forward-slash path of the palette artifact in the workspace."""
    directory = _trim_trailing_separator(to_forward_slashes(workspace_dir))
    return f"{directory}/{PALETTE_FILENAME}"


def palettegen_filter(quality: Quality | str, transparent: bool = False) -> str:
    """Filter expression for the palette generation pass.

    ``high`` leaves the palette size to FFmpeg; ``medium`` and ``low`` cap it.
    """
    expression = PALETTEGEN_FILTERS[Quality.parse(quality)]
    if transparent:
        expression = f"{expression}:{PALETTEGEN_TRANSPARENCY}"
    return expression


def paletteuse_filter(transparent: bool = False) -> str:
    if transparent:
        return f"{PALETTEUSE_FILTER}:{PALETTEUSE_TRANSPARENCY}"
    return PALETTEUSE_FILTER


def _loop_value(loop: bool) -> str:
    # GIF muxer: 0 loops forever, -1 plays once
    return "0" if loop else "-1"


def build_palette_command(
    workspace_dir: StrPath,
    options: EncodeOptions,
    *,
    encoder_path: StrPath,
    separator: str = os.sep,
) -> str:
    return " ".join(
        [
            _quote(to_forward_slashes(encoder_path), separator),
            "-y",
            "-framerate",
            str(options.fps),
            "-i",
            _quote(frame_input_pattern(workspace_dir, separator), separator),
            "-vf",
            palettegen_filter(options.quality, options.transparent),
            _quote(palette_path(workspace_dir), separator),
        ]
    )


def build_gif_command(
    workspace_dir: StrPath,
    output_path: StrPath,
    options: EncodeOptions,
    *,
    encoder_path: StrPath,
    separator: str = os.sep,
) -> str:
    return " ".join(
        [
            _quote(to_forward_slashes(encoder_path), separator),
            "-y",
            "-framerate",
            str(options.fps),
            "-i",
            _quote(frame_input_pattern(workspace_dir, separator), separator),
            "-i",
            _quote(palette_path(workspace_dir), separator),
            "-lavfi",
            paletteuse_filter(options.transparent),
            "-loop",
            _loop_value(options.loop),
            _quote(to_forward_slashes(output_path), separator),
        ]
    )


def build_commands(
    workspace_dir: StrPath,
    output_path: StrPath,
    options: EncodeOptions,
    *,
    encoder_path: StrPath,
    separator: str = os.sep,
) -> CommandPair:
    """Build the palette and GIF commands for one encode call.

    Parameters
    ----------
    workspace_dir
        Directory holding ``frame_0000.png`` … and receiving ``palette.png``.
    output_path
        Destination GIF.
    options
        Frame rate, quality tier, transparency and loop settings.
    encoder_path
        Resolved FFmpeg executable.
    separator
        Separator used in the frame input pattern; ``"\\"`` also selects
        Windows quoting.  Defaults to the host's.

    Raises
    ------
    ValueError
        A path cannot be quoted for the host (a ``"`` in a Windows path).
    """
    return CommandPair(
        palette_command=build_palette_command(
            workspace_dir, options, encoder_path=encoder_path, separator=separator
        ),
        gif_command=build_gif_command(
            workspace_dir,
            output_path,
            options,
            encoder_path=encoder_path,
            separator=separator,
        ),
    )
