"""
Subprocess wrapper around the external vanity key search tool.
"""

from __future__ import annotations

import logging
import subprocess
import time
from pathlib import Path

from grind_core.schemas import DerivationResult, GrindConfig, SearchOutcome, SearchStatus
from grind_core.workspace import LOG_FILENAME, collect_artifacts

logger = logging.getLogger(__name__)


def build_grind_command(
    keygen_bin: str,
    pattern: str,
    thread_hint: int | None = None,
    use_passphrase: bool = False,
) -> list[str]:
    """Build the grind argv. A missing or zero thread hint leaves the worker default."""
    command = [keygen_bin, "grind", "--ends-with", pattern]
    if not use_passphrase:
        command.append("--no-bip39-passphrase")
    if thread_hint:
        command.extend(["--num-threads", str(thread_hint)])
    return command


class SearchWorker:
    """
    Run ``<keygen> grind`` in a workspace and ``<keygen> pubkey`` on its output.

    The worker writes its keypair files into the current directory, so each
    invocation runs with ``cwd`` set to the workspace and its combined
    stdout/stderr redirected to ``grind.log`` there.
    """

    PUBKEY_TIMEOUT_S: float = 30.0

    def __init__(
        self,
        keygen_bin: str = "solana-keygen",
        use_passphrase: bool = False,
        timeout_seconds: float | None = None,
    ) -> None:
        self.keygen_bin: str = keygen_bin
        self.use_passphrase: bool = use_passphrase
        self.timeout_seconds: float | None = timeout_seconds

    @classmethod
    def from_config(cls, config: GrindConfig) -> "SearchWorker":
        return cls(
            keygen_bin=config.keygen_bin,
            use_passphrase=config.use_passphrase,
            timeout_seconds=config.grind_timeout_s,
        )

    def run_search(self, pattern: str, thread_hint: int | None, workspace: Path) -> SearchOutcome:
        command = build_grind_command(
            self.keygen_bin, pattern, thread_hint, use_passphrase=self.use_passphrase
        )
        log_path = workspace / LOG_FILENAME
        logger.debug("Running %s in %s", " ".join(command), workspace)

        start = time.perf_counter()
        try:
            with open(log_path, "w", encoding="utf-8") as log_file:
                completed = subprocess.run(
                    command,
                    cwd=workspace,
                    stdout=log_file,
                    stderr=subprocess.STDOUT,
                    timeout=self.timeout_seconds,
                )
        except subprocess.TimeoutExpired:
            runtime_ms = (time.perf_counter() - start) * 1000
            return SearchOutcome(
                status=SearchStatus.WORKER_FAILED,
                workspace=workspace,
                log_path=log_path,
                runtime_ms=runtime_ms,
                error=f"Timeout after {self.timeout_seconds}s",
            )
        except OSError as exc:
            runtime_ms = (time.perf_counter() - start) * 1000
            return SearchOutcome(
                status=SearchStatus.WORKER_FAILED,
                workspace=workspace,
                log_path=log_path,
                runtime_ms=runtime_ms,
                error=f"Cannot launch {self.keygen_bin}: {exc}",
            )

        runtime_ms = (time.perf_counter() - start) * 1000
        if completed.returncode != 0:
            return SearchOutcome(
                status=SearchStatus.WORKER_FAILED,
                workspace=workspace,
                log_path=log_path,
                returncode=completed.returncode,
                runtime_ms=runtime_ms,
                error=f"{self.keygen_bin} grind exited with status {completed.returncode}",
            )

        artifacts = collect_artifacts(workspace)
        if not artifacts:
            return SearchOutcome(
                status=SearchStatus.ANOMALOUS_EMPTY_SUCCESS,
                workspace=workspace,
                log_path=log_path,
                returncode=completed.returncode,
                runtime_ms=runtime_ms,
                error="grind reported success but no keypair files were found",
            )

        return SearchOutcome(
            status=SearchStatus.SUCCESS,
            workspace=workspace,
            log_path=log_path,
            artifacts=artifacts,
            returncode=completed.returncode,
            runtime_ms=runtime_ms,
        )

    def derive_public_key(self, artifact: Path) -> DerivationResult:
        start = time.perf_counter()
        try:
            completed = subprocess.run(
                [self.keygen_bin, "pubkey", str(artifact)],
                text=True,
                capture_output=True,
                timeout=self.PUBKEY_TIMEOUT_S,
            )
        except subprocess.TimeoutExpired:
            runtime_ms = (time.perf_counter() - start) * 1000
            return DerivationResult(False, None, f"Timeout after {self.PUBKEY_TIMEOUT_S}s", runtime_ms)
        except OSError as exc:
            runtime_ms = (time.perf_counter() - start) * 1000
            return DerivationResult(False, None, f"Cannot launch {self.keygen_bin}: {exc}", runtime_ms)

        runtime_ms = (time.perf_counter() - start) * 1000
        if completed.returncode != 0:
            error = completed.stderr.strip() or f"exit status {completed.returncode}"
            return DerivationResult(False, None, error, runtime_ms)

        public_key = completed.stdout.strip()
        if not public_key:
            return DerivationResult(False, None, "Empty response from pubkey", runtime_ms)
        return DerivationResult(True, public_key, None, runtime_ms)
