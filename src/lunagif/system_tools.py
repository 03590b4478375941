"""Utility helpers for locating the FFmpeg binary on the host.

These lightweight checks find the encoder *before* any encode runs, so that
the handler can report a clear "unavailable" status instead of failing halfway
through a pipeline.
"""

from __future__ import annotations

import logging
import os
import platform
import re
import subprocess
from dataclasses import dataclass
from pathlib import Path
from shutil import which

from .config import DEFAULT_ENCODER_CONFIG, EncoderConfig

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class ToolInfo:
    """Metadata for an external binary discovered on the system."""

    name: str
    available: bool
    version: str | None = None
    path: str | None = None


# ---------------------------------------------------------------------------
# Low-level helpers
# ---------------------------------------------------------------------------


def _which(cmd: str) -> str | None:
    """Return full path if *cmd* is executable in $PATH, else *None*."""
    return which(cmd)


def _extract_version(output: str, pattern: str) -> str | None:
    match = re.search(pattern, output)
    if match:
        return match.group(1)
    return None


def _run_version_cmd(cmd: list[str], regex: str, timeout: float = 5.0) -> str | None:
    try:
        completed = subprocess.run(cmd, capture_output=True, text=True, timeout=timeout)
    except (OSError, subprocess.SubprocessError):
        return None

    version = _extract_version(completed.stdout, regex) or _extract_version(
        completed.stderr, regex
    )
    if version:
        return version

    if completed.returncode != 0:
        return None

    return version


def _executable_name(tool_key: str) -> str:
    return f"{tool_key}.exe" if platform.system() == "Windows" else tool_key


def _is_executable(path: Path) -> bool:
    return path.is_file() and os.access(path, os.X_OK)


def _find_bundled_binary(tool_key: str, bundled_dir: str) -> str | None:
    """Find a build shipped next to the application (relative to the cwd)."""
    if not bundled_dir:
        return None
    candidate = Path.cwd() / bundled_dir / _executable_name(tool_key)
    if _is_executable(candidate):
        return str(candidate.resolve())
    return None


def _find_repository_binary(tool_key: str) -> str | None:
    """Find binary in repository bin/ directory for current platform."""
    platform_map = {
        "Darwin": "darwin",
        "Linux": "linux",
        "Windows": "windows",
    }

    arch_map = {
        "x86_64": "x86_64",
        "AMD64": "x86_64",  # Windows
        "arm64": "arm64",  # Apple Silicon
        "aarch64": "arm64",  # Linux ARM64
    }

    platform_dir = platform_map.get(platform.system())
    arch_dir = arch_map.get(platform.machine())

    if not platform_dir or not arch_dir:
        return None

    # Find project root (directory containing pyproject.toml or .git)
    current = Path(__file__).parent
    while current.parent != current:
        if any((current / marker).exists() for marker in ["pyproject.toml", ".git"]):
            break
        current = current.parent
    else:
        return None

    binary_path = current / "bin" / platform_dir / arch_dir / _executable_name(tool_key)
    if _is_executable(binary_path):
        return str(binary_path)

    return None


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------

_FALLBACK_TOOLS: dict[str, list[str]] = {
    "ffmpeg": ["ffmpeg"],
}

_VERSION_PATTERNS: dict[str, str] = {
    "ffmpeg": r"ffmpeg version (\S+)",
}

_CONFIG_MAPPING: dict[str, str] = {
    "ffmpeg": "FFMPEG_PATH",
}


def discover_tool(tool_key: str, encoder_config: EncoderConfig | None = None) -> ToolInfo:
    """Return *ToolInfo* for *tool_key*.

    Lookup order: the configured path, a bundled build next to the app, a
    repository ``bin/<platform>/<arch>/`` binary, then ``$PATH``.

    Args:
        tool_key: Tool identifier (currently only ``"ffmpeg"``)
        encoder_config: EncoderConfig instance (uses DEFAULT_ENCODER_CONFIG if None)

    Returns:
        ToolInfo with availability, resolved path and version information
    """
    if tool_key not in _FALLBACK_TOOLS:
        raise ValueError(f"Unknown tool: {tool_key}")

    if encoder_config is None:
        encoder_config = DEFAULT_ENCODER_CONFIG

    version_regex = _VERSION_PATTERNS.get(tool_key, r"(\d+\.\d+\.\d+)")
    timeout = encoder_config.PROBE_TIMEOUT

    def _found(name: str, path: str) -> ToolInfo:
        version = _run_version_cmd([path, "-version"], version_regex, timeout)
        logger.debug(f"🔎 Found {tool_key} at {path} (version: {version or 'unknown'})")
        return ToolInfo(name=name, available=True, version=version, path=path)

    configured_path = getattr(encoder_config, _CONFIG_MAPPING[tool_key], None)
    if configured_path:
        resolved = _which(configured_path)
        if resolved:
            return _found(configured_path, resolved)

    bundled_path = _find_bundled_binary(tool_key, encoder_config.BUNDLED_FFMPEG_DIR)
    if bundled_path:
        return _found(bundled_path, bundled_path)

    repo_binary_path = _find_repository_binary(tool_key)
    if repo_binary_path:
        return _found(repo_binary_path, repo_binary_path)

    for candidate in _FALLBACK_TOOLS[tool_key]:
        resolved = _which(candidate)
        if resolved:
            return _found(candidate, resolved)

    logger.debug(f"🔎 {tool_key} not found via config, bundled build or PATH")
    return ToolInfo(name=_FALLBACK_TOOLS[tool_key][0], available=False)
