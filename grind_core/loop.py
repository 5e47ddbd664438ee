from __future__ import annotations

import logging
import time
from collections.abc import Callable
from dataclasses import dataclass, field
from pathlib import Path
from typing import Protocol

from .artifacts import ArtifactProcessor
from .schemas import (
    ArtifactResult,
    ArtifactStatus,
    GrindConfig,
    IterationReport,
    SearchOutcome,
    SearchStatus,
    WorkspaceOutcome,
)
from .workspace import LOG_FILENAME, WorkspaceManager, collect_artifacts, read_log_preview

logger = logging.getLogger(__name__)


class SearchRunner(Protocol):
    def run_search(self, pattern: str, thread_hint: int | None, workspace: Path) -> SearchOutcome:
        ...


@dataclass
class RunStats:
    iterations: int = 0
    worker_failures: int = 0
    empty_successes: int = 0
    inserted: int = 0
    duplicates: int = 0
    derivation_failures: int = 0
    encoding_failures: int = 0
    storage_failures: int = 0
    retained_workspaces: list[str] = field(default_factory=list)

    def record(self, report: IterationReport) -> None:
        self.iterations += 1
        if report.search.status is SearchStatus.WORKER_FAILED:
            self.worker_failures += 1
        elif report.search.status is SearchStatus.ANOMALOUS_EMPTY_SUCCESS:
            self.empty_successes += 1
        self.inserted += report.count(ArtifactStatus.INSERTED)
        self.duplicates += report.count(ArtifactStatus.DUPLICATE)
        self.derivation_failures += report.count(ArtifactStatus.DERIVATION_FAILED)
        self.encoding_failures += report.count(ArtifactStatus.ENCODING_FAILED)
        self.storage_failures += report.count(ArtifactStatus.STORAGE_FAILED)
        if report.outcome is WorkspaceOutcome.DEGRADED:
            self.retained_workspaces.append(str(report.workspace))

    @property
    def artifact_failures(self) -> int:
        return self.derivation_failures + self.encoding_failures + self.storage_failures

    def to_dict(self) -> dict[str, object]:
        return {
            "iterations": self.iterations,
            "worker_failures": self.worker_failures,
            "empty_successes": self.empty_successes,
            "inserted": self.inserted,
            "duplicates": self.duplicates,
            "derivation_failures": self.derivation_failures,
            "encoding_failures": self.encoding_failures,
            "storage_failures": self.storage_failures,
            "retained_workspaces": list(self.retained_workspaces),
        }


class GrindLoop:
    """
    Sequential grind loop: acquire workspace, search, store matches, release.

    Each iteration is fully resolved (workspace removed or retained) before
    the next one starts. Worker failures and empty successes are retried after
    the configured pause; artifact failures keep the workspace on disk but
    never stop the loop. ``should_stop`` is only consulted between iterations
    and during the pause.
    """

    def __init__(
        self,
        config: GrindConfig,
        workspaces: WorkspaceManager,
        searcher: SearchRunner,
        processor: ArtifactProcessor,
        sleep_fn: Callable[[float], None] | None = None,
        on_report: Callable[[IterationReport], None] | None = None,
        echo: Callable[[str], None] | None = None,
    ) -> None:
        self.config = config
        self.workspaces = workspaces
        self.searcher = searcher
        self.processor = processor
        self.sleep_fn = sleep_fn or time.sleep
        self.on_report = on_report
        self.echo = echo or print
        self.stats = RunStats()
        self._iteration = 0

    def run_iteration(self) -> IterationReport:
        start = time.perf_counter()
        self._iteration += 1
        workspace = self.workspaces.acquire()
        search = self.searcher.run_search(self.config.pattern, self.config.num_threads, workspace)
        report = IterationReport(iteration=self._iteration, workspace=workspace, search=search)

        if search.succeeded:
            self._settle(report)
        else:
            self._report_search_failure(search)
            leftover = collect_artifacts(workspace)
            if leftover:
                # keypairs written before a timeout or crash are still stored
                self.echo(f"Processing {len(leftover)} keypair file(s) written before the failure")
                self._settle(report, leftover)
            else:
                self.workspaces.discard(workspace)
                report.outcome = WorkspaceOutcome.DISCARDED

        report.runtime_ms = (time.perf_counter() - start) * 1000
        logger.debug(
            "Iteration %d finished: search=%s outcome=%s artifacts=%d",
            report.iteration,
            search.status.value,
            report.outcome.value,
            len(report.artifacts),
        )
        self.stats.record(report)
        if self.on_report is not None:
            self.on_report(report)
        return report

    def run(
        self,
        max_iterations: int | None = None,
        should_stop: Callable[[], bool] | None = None,
    ) -> RunStats:
        stop = should_stop or (lambda: False)
        while not stop():
            if max_iterations is not None and self.stats.iterations >= max_iterations:
                break
            self.run_iteration()
            if max_iterations is not None and self.stats.iterations >= max_iterations:
                break
            self.pause(stop)
        return self.stats

    def recover(self, workspace: Path) -> IterationReport:
        """Re-process the keypair files left in a retained workspace.

        The workspace is removed only if every artifact now stores cleanly.
        """
        artifacts = collect_artifacts(workspace)
        status = SearchStatus.SUCCESS if artifacts else SearchStatus.ANOMALOUS_EMPTY_SUCCESS
        search = SearchOutcome(
            status=status,
            workspace=workspace,
            log_path=workspace / LOG_FILENAME,
            artifacts=artifacts,
        )
        report = IterationReport(iteration=0, workspace=workspace, search=search)
        if not artifacts:
            self.echo(f"No keypair files found in {workspace}")
            report.outcome = WorkspaceOutcome.DEGRADED
            return report
        self._settle(report)
        return report

    def _settle(self, report: IterationReport, artifacts: tuple[Path, ...] | None = None) -> None:
        search = report.search
        if artifacts is None:
            artifacts = search.artifacts
        report.artifacts = self.processor.process_all(artifacts)
        for result in report.artifacts:
            self._report_artifact(result, search)
        report.outcome = (
            WorkspaceOutcome.CLEAN
            if all(result.status.committed for result in report.artifacts)
            else WorkspaceOutcome.DEGRADED
        )
        if not self.workspaces.release(report.workspace, report.outcome):
            self.echo(f"One or more artifacts failed; leaving artifacts in {report.workspace}")

    def pause(self, should_stop: Callable[[], bool]) -> None:
        remaining = self.config.sleep_between_loops
        while remaining > 0 and not should_stop():
            step = min(remaining, 1.0)
            self.sleep_fn(step)
            remaining -= step

    def _report_search_failure(self, search: SearchOutcome) -> None:
        if search.status is SearchStatus.ANOMALOUS_EMPTY_SUCCESS:
            self.echo("grind reported success but no keypair files were found")
        else:
            self.echo(f"grind failed ({search.error}); log:")
        preview = read_log_preview(search.log_path, self.config.log_preview_lines)
        if preview:
            self.echo(preview.rstrip("\n"))

    def _report_artifact(self, result: ArtifactResult, search: SearchOutcome) -> None:
        if result.status is ArtifactStatus.INSERTED:
            self.echo(f"Inserted {result.public_key}")
        elif result.status is ArtifactStatus.DUPLICATE:
            self.echo(f"Already stored {result.public_key}")
        elif result.status is ArtifactStatus.DERIVATION_FAILED:
            self.echo(f"Failed to derive public key from {result.path}")
        elif result.status is ArtifactStatus.ENCODING_FAILED:
            self.echo(f"Failed to convert keypair JSON into hex for {result.path}: {result.error}")
        else:
            self.echo(f"Insert failed for {result.public_key}: {result.error}")
            self.echo(f"Keypair kept at: {result.path}")
            self.echo(f"Log kept at: {search.log_path}")
