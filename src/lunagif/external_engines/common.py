from __future__ import annotations

import errno
import logging
import os
import shlex
import subprocess
import time

from ..boundary import CommandResult
from ..error_handling import ProcessSpawnError

__all__ = [
    "run_command",
    "split_command",
]

logger = logging.getLogger(__name__)


def _strip_quotes(token: str) -> str:
    if len(token) >= 2 and token[0] == token[-1] == '"':
        return token[1:-1]
    return token


def split_command(command: str, *, posix: bool | None = None) -> list[str]:
    """Split an encoder command string into an argument list.

    POSIX hosts use shell-style rules.  Windows keeps backslashes intact
    (they are path separators there) and only strips surrounding quotes.
    """
    if posix is None:
        posix = os.name != "nt"
    if posix:
        return shlex.split(command, posix=True)
    return [_strip_quotes(token) for token in shlex.split(command, posix=False)]


def _as_text(output: str | bytes | None) -> str:
    if output is None:
        return ""
    if isinstance(output, bytes):
        return output.decode("utf-8", errors="replace")
    return output


def run_command(command: str, *, timeout: float | None = 300) -> CommandResult:
    """Execute *command* and capture its output.

    The helper blocks until the process exits.  A non-zero exit status is
    returned in the result rather than raised; a timeout kills the process and
    is reported with ``timed_out=True``.

    Parameters
    ----------
    command
        Full command line as produced by the command builder.
    timeout
        Optional hard timeout (seconds) – *None* disables the limit.

    Raises
    ------
    ProcessSpawnError
        The command could not be parsed or the process could not be started
        (missing binary, access denied, …).
    """
    try:
        args = split_command(command)
    except ValueError as e:
        raise ProcessSpawnError(
            f"Invalid argument quoting in command: {e}", cause=e, context={"command": command}
        ) from e
    if not args:
        raise ProcessSpawnError("Cannot run an empty command")

    start = time.perf_counter()
    try:
        completed = subprocess.run(args, capture_output=True, text=True, timeout=timeout)
    except subprocess.TimeoutExpired as e:
        duration_ms = int((time.perf_counter() - start) * 1000)
        logger.warning(f"⏱️ {args[0]} timed out after {duration_ms} ms")
        stderr = _as_text(e.stderr).rstrip()
        return CommandResult(
            stdout=_as_text(e.stdout),
            stderr=f"{stderr}\nProcess timed out after {timeout} seconds".lstrip(),
            exit_code=-1,
            timed_out=True,
        )
    except OSError as e:
        code = errno.errorcode.get(e.errno, "") if e.errno is not None else ""
        raise ProcessSpawnError(
            f"Could not start {args[0]}: {code} {e.strerror or e}".replace("  ", " "),
            cause=e,
            context={"command": command},
        ) from e

    duration_ms = int((time.perf_counter() - start) * 1000)
    logger.debug(f"{args[0]} exited with {completed.returncode} after {duration_ms} ms")

    return CommandResult(
        stdout=completed.stdout or "",
        stderr=completed.stderr or "",
        exit_code=completed.returncode,
    )
