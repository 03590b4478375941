"""Per-call temporary working directories."""

from __future__ import annotations

import logging
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass

from .boundary import EncoderBoundary
from .error_handling import LunaGifError, WorkspaceError, log_warning_with_context

logger = logging.getLogger(__name__)


@dataclass
class Workspace:
    """A directory owned by exactly one in-flight encode call."""

    path: str
    released: bool = False


class WorkspaceManager:
    """Acquires and releases workspaces through the boundary.

    Use :meth:`session` so that release runs on every exit path.
    """

    def __init__(self, boundary: EncoderBoundary):
        self._boundary = boundary

    def acquire(self) -> Workspace:
        try:
            path = self._boundary.create_temp_directory()
        except WorkspaceError:
            raise
        except (LunaGifError, OSError) as e:
            raise WorkspaceError(f"Could not create temporary directory: {e}", cause=e) from e

        if not path:
            raise WorkspaceError("Boundary returned an empty temporary directory path")

        logger.debug(f"📁 Acquired workspace {path}")
        return Workspace(path=path)

    def release(self, workspace: Workspace) -> None:
        """Delete *workspace*; never raises and only acts once per workspace."""
        if workspace.released:
            return
        workspace.released = True

        try:
            self._boundary.remove_directory(workspace.path)
        except Exception as e:  # noqa: BLE001 – cleanup must not mask the primary error
            log_warning_with_context(
                f"Failed to clean up workspace: {e}",
                context={"workspace": workspace.path},
                logger=logger,
            )
        else:
            logger.debug(f"🧹 Released workspace {workspace.path}")

    @contextmanager
    def session(self) -> Iterator[Workspace]:
        workspace = self.acquire()
        try:
            yield workspace
        finally:
            self.release(workspace)
