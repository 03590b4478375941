"""Configuration settings for lunagif."""

from __future__ import annotations

import os
from dataclasses import dataclass
from enum import Enum

from .error_handling import ConfigurationError

# Frame naming contract shared by the materializer and the encoder input pattern.
FRAME_PREFIX = "frame_"
FRAME_EXTENSION = "png"
FRAME_INDEX_WIDTH = 4
FRAME_PATTERN = f"{FRAME_PREFIX}%0{FRAME_INDEX_WIDTH}d.{FRAME_EXTENSION}"

PALETTE_FILENAME = "palette.png"

DEFAULT_FPS = 15


class Quality(str, Enum):
    """Quality tiers for palette generation."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"

    @classmethod
    def parse(cls, value: Quality | str) -> Quality:
        """Coerce *value* (case-insensitive string or member) to a tier."""
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            allowed = ", ".join(member.value for member in cls)
            raise ValueError(
                f"quality must be one of {allowed}, got {value!r}"
            ) from None


# Palette generation filters per quality tier.  "high" lets palettegen pick a
# fully adaptive palette; lower tiers cap the color count.
PALETTEGEN_FILTERS: dict[Quality, str] = {
    Quality.HIGH: "palettegen=stats_mode=diff",
    Quality.MEDIUM: "palettegen=max_colors=256:stats_mode=diff",
    Quality.LOW: "palettegen=max_colors=128:stats_mode=diff",
}

# Fixed dithering profile used when applying the palette.
PALETTEUSE_FILTER = "paletteuse=dither=bayer:bayer_scale=5:diff_mode=rectangle"

# Appended to the filters above when the output keeps transparency.
PALETTEGEN_TRANSPARENCY = "reserve_transparent=1"
PALETTEUSE_TRANSPARENCY = "alpha_threshold=128"


@dataclass(frozen=True)
class EncodeOptions:
    """Caller-supplied options for a single encode call."""

    fps: int = DEFAULT_FPS
    quality: Quality = Quality.MEDIUM
    transparent: bool = True
    loop: bool = True

    def __post_init__(self) -> None:
        # bool is an int subclass; reject it explicitly
        if isinstance(self.fps, bool) or not isinstance(self.fps, int):
            raise ValueError(f"fps must be a positive integer, got {self.fps!r}")
        if self.fps <= 0:
            raise ValueError(f"fps must be a positive integer, got {self.fps}")

        object.__setattr__(self, "quality", Quality.parse(self.quality))
        object.__setattr__(self, "transparent", bool(self.transparent))
        object.__setattr__(self, "loop", bool(self.loop))


@dataclass
class EncoderConfig:
    """Configuration for the FFmpeg encoder with environment variable overrides."""

    # Path to the FFmpeg executable.
    # Usually "ffmpeg" works if installed via package manager
    # Override with: LUNAGIF_FFMPEG_PATH
    FFMPEG_PATH: str = "ffmpeg"

    # Directory (relative to the working directory) holding a bundled FFmpeg
    # build, as shipped next to the desktop app on Windows.
    # Override with: LUNAGIF_BUNDLED_FFMPEG_DIR
    BUNDLED_FFMPEG_DIR: str = "ffmpeg-master-latest-win64-gpl-shared/bin"

    # Prefix for per-call working directories created under the system temp dir.
    # Override with: LUNAGIF_TEMP_DIR_PREFIX
    TEMP_DIR_PREFIX: str = "luna-animation-"

    # Hard timeout (seconds) for a single encoder stage; 0 disables the limit.
    # Override with: LUNAGIF_COMMAND_TIMEOUT
    COMMAND_TIMEOUT: float = 300.0

    # Timeout (seconds) for the `ffmpeg -version` probe.
    # Override with: LUNAGIF_PROBE_TIMEOUT
    PROBE_TIMEOUT: float = 5.0

    def __post_init__(self) -> None:
        """Apply environment variable overrides after initialization."""
        env_overrides = {
            "FFMPEG_PATH": "LUNAGIF_FFMPEG_PATH",
            "BUNDLED_FFMPEG_DIR": "LUNAGIF_BUNDLED_FFMPEG_DIR",
            "TEMP_DIR_PREFIX": "LUNAGIF_TEMP_DIR_PREFIX",
            "COMMAND_TIMEOUT": "LUNAGIF_COMMAND_TIMEOUT",
            "PROBE_TIMEOUT": "LUNAGIF_PROBE_TIMEOUT",
        }

        for attr_name, env_var_name in env_overrides.items():
            env_value = os.getenv(env_var_name)
            if not env_value:
                continue
            if attr_name in ("COMMAND_TIMEOUT", "PROBE_TIMEOUT"):
                try:
                    setattr(self, attr_name, float(env_value))
                except ValueError as e:
                    raise ConfigurationError(
                        f"{env_var_name} must be a number of seconds, got {env_value!r}",
                        cause=e,
                    ) from e
            else:
                setattr(self, attr_name, env_value)

        if self.COMMAND_TIMEOUT < 0:
            raise ConfigurationError(
                f"COMMAND_TIMEOUT must be non-negative, got {self.COMMAND_TIMEOUT}"
            )
        if self.PROBE_TIMEOUT <= 0:
            raise ConfigurationError(
                f"PROBE_TIMEOUT must be positive, got {self.PROBE_TIMEOUT}"
            )

    @property
    def command_timeout(self) -> float | None:
        """Stage timeout in seconds, or *None* when disabled."""
        return self.COMMAND_TIMEOUT or None


# Default configuration instance
DEFAULT_ENCODER_CONFIG = EncoderConfig()
