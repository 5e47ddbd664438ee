"""Process-level runner wiring the grind loop to the worker and the store."""

from __future__ import annotations

import signal
from collections.abc import Callable
from pathlib import Path
from typing import Any

from tqdm import tqdm

from grind_core.artifacts import ArtifactProcessor
from grind_core.loop import GrindLoop, RunStats
from grind_core.schemas import IterationReport
from grind_core.workspace import WorkspaceManager
from store.repository import KeypairStore
from worker.executor import SearchWorker
from worker.tools import require_tools

from service.config import ServiceConfig, redact_database_url, save_config
from service.metrics import MetricsWriter


class GrindRunner:
    """Owns the process-scoped pieces: store connection, signal handling, progress."""

    def __init__(self, config: ServiceConfig, echo: Callable[[str], None] | None = None):
        self.config = config
        self.echo = echo or tqdm.write
        self.interrupted = False
        self.store = KeypairStore(config.database_url)
        self.workspaces = WorkspaceManager(config.workspace_root)
        self.worker = SearchWorker.from_config(config)
        self.metrics = MetricsWriter(config.metrics_path) if config.metrics_path else None
        self._pbar: Any = None
        self._loop: GrindLoop | None = None

    def preflight(self) -> None:
        """Fail fast if the search tool is missing (raises ToolMissingError)."""
        require_tools([self.config.keygen_bin])

    def build_loop(self, sleep_fn: Callable[[float], None] | None = None) -> GrindLoop:
        processor = ArtifactProcessor(deriver=self.worker, sink=self.store)
        return GrindLoop(
            config=self.config,
            workspaces=self.workspaces,
            searcher=self.worker,
            processor=processor,
            sleep_fn=sleep_fn,
            on_report=self._on_report,
            echo=self.echo,
        )

    def _setup_signal_handlers(self) -> dict[int, Any]:
        """Stop between iterations on Ctrl+C / SIGTERM; returns the previous handlers."""
        def signal_handler(signum: int, frame: Any) -> None:
            if not self.interrupted:
                self.echo("\n⚠️  Interrupt received. Finishing the current step, then stopping...")
            self.interrupted = True

        previous = {}
        for signum in (signal.SIGINT, signal.SIGTERM):
            previous[signum] = signal.signal(signum, signal_handler)
        return previous

    def run(self, loop: GrindLoop | None = None) -> dict[str, object]:
        """Run until interrupted (or ``max_iterations``) and return the run summary."""
        self.preflight()
        if self.metrics is not None:
            snapshot = self.metrics.path.with_name(f"{self.metrics.path.stem}.config.yaml")
            save_config(self.config, snapshot)
        previous_handlers = self._setup_signal_handlers()
        loop = loop or self.build_loop()
        self._loop = loop

        self.echo(f"🚀 Starting vanity grind loop for pattern: {self.config.pattern}")
        self.echo(f"   Store: {redact_database_url(self.config.database_url) or '<unset>'}")
        self.echo(f"   Workspaces: {self.workspaces.root}")
        self.echo("   Press Ctrl-C to stop.")

        self._pbar = tqdm(desc="⛏️  Grinding", unit="iter", ncols=100)
        try:
            stats = loop.run(
                max_iterations=self.config.max_iterations,
                should_stop=lambda: self.interrupted,
            )
        finally:
            self._pbar.close()
            self._pbar = None
            self.store.close()
            for signum, handler in previous_handlers.items():
                signal.signal(signum, handler)

        return self._finalize(stats)

    def recover(self, workspace: Path) -> IterationReport:
        loop = self.build_loop()
        try:
            return loop.recover(workspace)
        finally:
            self.store.close()

    def _on_report(self, report: IterationReport) -> None:
        if self.metrics is not None:
            self.metrics.write(report)
        if self._pbar is None:
            return
        self._pbar.update(1)
        if self._loop is not None:
            stats = self._loop.stats
            self._pbar.set_postfix({
                "Inserted": stats.inserted,
                "Dup": stats.duplicates,
                "Failed": stats.worker_failures + stats.empty_successes + stats.artifact_failures,
                "Retained": len(stats.retained_workspaces),
            })

    def _finalize(self, stats: RunStats) -> dict[str, object]:
        summary = stats.to_dict()
        summary["status"] = "interrupted" if self.interrupted else "completed"

        self.echo("\n📊 Run Summary:")
        self.echo(f"   Iterations: {stats.iterations}")
        self.echo(f"   Inserted: {stats.inserted}")
        self.echo(f"   Already stored: {stats.duplicates}")
        self.echo(f"   Worker failures: {stats.worker_failures + stats.empty_successes}")
        self.echo(f"   Artifact failures: {stats.artifact_failures}")
        for path in stats.retained_workspaces:
            self.echo(f"   Retained: {path}")
        return summary
