from __future__ import annotations

import json
from pathlib import Path

import pytest
from typer.testing import CliRunner

from grind_core.workspace import WORKSPACE_PREFIX
from service.cli import app
from service.config import ENV_FIELDS
from store.repository import KeypairStore

runner = CliRunner()


@pytest.fixture
def grind_env(tmp_path: Path, fake_keygen: Path, sqlite_url: str, monkeypatch) -> Path:
    """Point every command at the fake keygen, a scratch store and a scratch workspace root."""
    for name in ENV_FIELDS:
        monkeypatch.delenv(name, raising=False)
    work = tmp_path / "work"
    monkeypatch.setenv("KEYGEN_BIN", str(fake_keygen))
    monkeypatch.setenv("DATABASE_URL", sqlite_url)
    monkeypatch.setenv("GRIND_WORKSPACE_ROOT", str(work))
    monkeypatch.setenv("PATTERN", "ab:1")
    return work


def _retained(work: Path, name: str = "kept") -> Path:
    workspace = work / f"{WORKSPACE_PREFIX}{name}"
    workspace.mkdir(parents=True)
    (workspace / "Key0ab.json").write_text(json.dumps(list(range(64))))
    (workspace / "grind.log").write_text("Wrote keypair to Key0ab.json\n")
    return workspace


def test_run_finishes_after_max_iterations(grind_env: Path, sqlite_url: str) -> None:
    result = runner.invoke(app, ["run", "--max-iterations", "1"])

    assert result.exit_code == 0, result.output
    assert "Grind loop finished" in result.output
    with KeypairStore(sqlite_url) as keypairs:
        assert keypairs.get("Key0ab") is not None


def test_run_rejects_invalid_pattern(grind_env: Path) -> None:
    result = runner.invoke(app, ["run", "--pattern", "ab:0", "--max-iterations", "1"])
    assert result.exit_code == 1


def test_run_exits_when_tool_missing(grind_env: Path, monkeypatch) -> None:
    monkeypatch.setenv("KEYGEN_BIN", "definitely-not-solana-keygen")
    result = runner.invoke(app, ["run", "--max-iterations", "1"])
    assert result.exit_code == 1
    assert "not found in PATH" in result.output


def test_run_reads_yaml_config(grind_env: Path, tmp_path: Path, monkeypatch) -> None:
    monkeypatch.delenv("PATTERN")
    config_path = tmp_path / "grind.yaml"
    config_path.write_text("pattern: 'Key0ab:1'\nmax_iterations: 1\n")

    result = runner.invoke(app, ["run", "--config", str(config_path)])

    assert result.exit_code == 0, result.output
    assert "pattern: Key0ab:1" in result.output


def test_missing_config_file_exits(grind_env: Path, tmp_path: Path) -> None:
    result = runner.invoke(app, ["check", "--config", str(tmp_path / "nope.yaml")])
    assert result.exit_code == 1
    assert "Config file not found" in result.output


def test_check_reports_tool_and_store(grind_env: Path) -> None:
    result = runner.invoke(app, ["check", "--store"])
    assert result.exit_code == 0, result.output
    assert "found" in result.output
    assert "Store reachable" in result.output
    assert "0 keypairs" in result.output


def test_check_fails_without_store_url(grind_env: Path, monkeypatch) -> None:
    monkeypatch.delenv("DATABASE_URL")
    result = runner.invoke(app, ["check", "--store"])
    assert result.exit_code == 1
    assert "DATABASE_URL is not set" in result.output


def test_init_store_creates_database(grind_env: Path, tmp_path: Path) -> None:
    result = runner.invoke(app, ["init-store"])
    assert result.exit_code == 0, result.output
    assert (tmp_path / "keys.db").exists()


def test_list_retained(grind_env: Path) -> None:
    empty = runner.invoke(app, ["list-retained"])
    assert empty.exit_code == 0
    assert "No retained workspaces" in empty.output

    workspace = _retained(grind_env)
    result = runner.invoke(app, ["list-retained"])
    assert result.exit_code == 0
    assert str(workspace) in result.output
    assert "Keypairs: 1" in result.output


def test_recover_inserts_and_removes_workspace(grind_env: Path, sqlite_url: str) -> None:
    workspace = _retained(grind_env)

    result = runner.invoke(app, ["recover", str(workspace)])

    assert result.exit_code == 0, result.output
    assert "Inserted Key0ab" in result.output
    assert not workspace.exists()
    with KeypairStore(sqlite_url) as keypairs:
        stored = keypairs.get("Key0ab")
        assert stored is not None
        assert stored.private_key == bytes(range(64))


def test_recover_keeps_workspace_when_store_is_down(grind_env: Path, monkeypatch) -> None:
    monkeypatch.delenv("DATABASE_URL")
    workspace = _retained(grind_env)

    result = runner.invoke(app, ["recover", str(workspace)])

    assert result.exit_code == 1
    assert "Workspace kept" in result.output
    assert (workspace / "Key0ab.json").exists()


def test_recover_missing_workspace(grind_env: Path, tmp_path: Path) -> None:
    result = runner.invoke(app, ["recover", str(tmp_path / "gone")])
    assert result.exit_code == 1
    assert "Workspace not found" in result.output


def test_run_exits_when_metrics_directory_cannot_be_created(
    grind_env: Path, tmp_path: Path, monkeypatch
) -> None:
    blocker = tmp_path / "blocker"
    blocker.write_text("x")
    monkeypatch.setenv("GRIND_METRICS_PATH", str(blocker / "metrics" / "grind.jsonl"))

    result = runner.invoke(app, ["run", "--max-iterations", "1"])

    assert result.exit_code == 1
    assert "Cannot write run files" in result.output
    assert not isinstance(result.exception, OSError)


def test_run_exits_when_config_snapshot_cannot_be_written(
    grind_env: Path, tmp_path: Path, monkeypatch
) -> None:
    metrics_dir = tmp_path / "metrics"
    (metrics_dir / "grind.config.yaml").mkdir(parents=True)
    monkeypatch.setenv("GRIND_METRICS_PATH", str(metrics_dir / "grind.jsonl"))

    result = runner.invoke(app, ["run", "--max-iterations", "1"])

    assert result.exit_code == 1
    assert "Cannot write run files" in result.output
    assert not grind_env.exists()
