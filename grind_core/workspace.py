"""Per-iteration workspace directories."""

from __future__ import annotations

import logging
import shutil
import tempfile
from itertools import islice
from pathlib import Path

from .schemas import WorkspaceOutcome

logger = logging.getLogger(__name__)

WORKSPACE_PREFIX = "solkeygrind."
LOG_FILENAME = "grind.log"
ARTIFACT_GLOB = "*.json"


class WorkspaceError(RuntimeError):
    """Raised when a workspace directory cannot be created."""


class WorkspaceManager:
    """
    Hand out one fresh directory per loop iteration.

    Every workspace is a direct child of ``root`` with a unique name, so two
    iterations never share or nest directories. A workspace is only removed
    when its iteration resolved cleanly (or was discarded after a worker
    failure); otherwise it stays on disk for manual recovery.
    """

    def __init__(self, root: str | Path | None = None) -> None:
        self.root: Path = Path(root) if root is not None else Path(tempfile.gettempdir())

    def acquire(self) -> Path:
        try:
            self.root.mkdir(parents=True, exist_ok=True)
            path = Path(tempfile.mkdtemp(prefix=WORKSPACE_PREFIX, dir=self.root))
        except OSError as exc:
            raise WorkspaceError(f"Cannot create workspace under {self.root}: {exc}") from exc
        logger.debug("Acquired workspace %s", path)
        return path

    def release(self, path: Path, outcome: WorkspaceOutcome) -> bool:
        """Remove ``path`` if ``outcome`` is clean. Returns False when it is kept for recovery."""
        if outcome is WorkspaceOutcome.CLEAN:
            self._remove(path)
            return True
        logger.warning("Workspace retained for recovery: %s", path)
        return False

    def discard(self, path: Path) -> bool:
        return self._remove(path)

    def list_retained(self) -> list[Path]:
        if not self.root.is_dir():
            return []
        return sorted(
            entry
            for entry in self.root.iterdir()
            if entry.is_dir() and entry.name.startswith(WORKSPACE_PREFIX)
        )

    def _remove(self, path: Path) -> bool:
        try:
            shutil.rmtree(path)
        except FileNotFoundError:
            return True
        except OSError as exc:
            logger.warning("Could not remove workspace %s: %s", path, exc)
            return False
        logger.debug("Removed workspace %s", path)
        return True


def read_log_preview(log_path: Path, max_lines: int = 200) -> str:
    """Return at most the first ``max_lines`` lines of a workspace log."""
    try:
        with open(log_path, "r", encoding="utf-8", errors="replace") as f:
            return "".join(islice(f, max_lines))
    except OSError as exc:
        return f"<log unavailable: {exc}>"


def collect_artifacts(workspace: Path) -> tuple[Path, ...]:
    """Keypair files in ``workspace``, sorted by name for a stable order."""
    return tuple(sorted(path for path in workspace.glob(ARTIFACT_GLOB) if path.is_file()))
