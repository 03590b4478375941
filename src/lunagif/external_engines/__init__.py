from .common import run_command, split_command
from .ffmpeg import CommandPair, build_commands

__all__ = [
    "CommandPair",
    "build_commands",
    "run_command",
    "split_command",
]
