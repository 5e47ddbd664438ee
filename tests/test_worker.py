import sys
from pathlib import Path

import pytest

from grind_core.schemas import SearchStatus
from worker.executor import SearchWorker, build_grind_command
from worker.tools import ToolMissingError, find_missing_tools, require_tools


def _workspace(tmp_path: Path) -> Path:
    workspace = tmp_path / "ws"
    workspace.mkdir()
    return workspace


def test_command_omits_thread_hint_when_unset() -> None:
    assert build_grind_command("solana-keygen", "ab:1") == [
        "solana-keygen",
        "grind",
        "--ends-with",
        "ab:1",
        "--no-bip39-passphrase",
    ]
    assert "--num-threads" not in build_grind_command("solana-keygen", "ab:1", 0)


def test_command_includes_thread_hint_and_passphrase_toggle() -> None:
    command = build_grind_command("kg", "ab:1", 8, use_passphrase=True)
    assert command == ["kg", "grind", "--ends-with", "ab:1", "--num-threads", "8"]


def test_successful_grind_collects_artifacts(tmp_path: Path, fake_keygen: Path, monkeypatch) -> None:
    monkeypatch.setenv("FAKE_KEYGEN_COUNT", "2")
    workspace = _workspace(tmp_path)
    worker = SearchWorker(keygen_bin=str(fake_keygen))

    outcome = worker.run_search("ab:2", 4, workspace)

    assert outcome.status is SearchStatus.SUCCESS
    assert [p.name for p in outcome.artifacts] == ["Key0ab.json", "Key1ab.json"]
    assert outcome.returncode == 0
    assert outcome.log_path == workspace / "grind.log"
    assert "Searching for ab:2" in outcome.log_path.read_text()
    argv = (workspace / "argv.txt").read_text()
    assert argv == "grind --ends-with ab:2 --no-bip39-passphrase --num-threads 4"


def test_failed_grind_is_worker_failed_with_log(tmp_path: Path, fake_keygen: Path, monkeypatch) -> None:
    monkeypatch.setenv("FAKE_KEYGEN_MODE", "fail")
    workspace = _workspace(tmp_path)

    outcome = SearchWorker(keygen_bin=str(fake_keygen)).run_search("ab:1", None, workspace)

    assert outcome.status is SearchStatus.WORKER_FAILED
    assert outcome.returncode == 3
    assert outcome.artifacts == ()
    assert "resource temporarily unavailable" in outcome.log_path.read_text()


def test_empty_success_is_anomalous(tmp_path: Path, fake_keygen: Path, monkeypatch) -> None:
    monkeypatch.setenv("FAKE_KEYGEN_MODE", "empty")
    workspace = _workspace(tmp_path)

    outcome = SearchWorker(keygen_bin=str(fake_keygen)).run_search("ab:1", None, workspace)

    assert outcome.status is SearchStatus.ANOMALOUS_EMPTY_SUCCESS
    assert not outcome.succeeded


def test_missing_binary_is_worker_failed(tmp_path: Path) -> None:
    workspace = _workspace(tmp_path)
    outcome = SearchWorker(keygen_bin=str(tmp_path / "nope")).run_search("ab:1", None, workspace)
    assert outcome.status is SearchStatus.WORKER_FAILED
    assert outcome.error and "Cannot launch" in outcome.error


def test_grind_timeout_is_worker_failed(tmp_path: Path) -> None:
    slow = tmp_path / "slow-keygen"
    slow.write_text(f"#!{sys.executable}\nimport time\ntime.sleep(10)\n")
    slow.chmod(0o755)
    workspace = _workspace(tmp_path)

    outcome = SearchWorker(keygen_bin=str(slow), timeout_seconds=0.5).run_search(
        "ab:1", None, workspace
    )

    assert outcome.status is SearchStatus.WORKER_FAILED
    assert outcome.error and "Timeout" in outcome.error


def test_derive_public_key(tmp_path: Path, fake_keygen: Path, monkeypatch) -> None:
    artifact = tmp_path / "Pubab.json"
    artifact.write_text("[]")
    worker = SearchWorker(keygen_bin=str(fake_keygen))

    result = worker.derive_public_key(artifact)
    assert result.success is True
    assert result.public_key == "Pubab"

    monkeypatch.setenv("FAKE_KEYGEN_MODE", "nopubkey")
    failed = worker.derive_public_key(artifact)
    assert failed.success is False
    assert failed.public_key is None
    assert failed.error == "cannot read keypair"


def test_require_tools_reports_missing(fake_keygen: Path) -> None:
    assert find_missing_tools([str(fake_keygen)]) == []
    with pytest.raises(ToolMissingError, match="not found in PATH") as excinfo:
        require_tools(["definitely-not-a-real-tool-xyz"])
    assert excinfo.value.missing == ["definitely-not-a-real-tool-xyz"]
