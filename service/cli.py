"""CLI interface for the vanity grinder."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional

import typer

from grind_core.schemas import WorkspaceOutcome
from grind_core.workspace import WorkspaceError, WorkspaceManager
from store.database import StoreError
from store.repository import KeypairStore
from worker.tools import ToolMissingError, find_missing_tools

from service.config import ConfigError, ServiceConfig, load_config, redact_database_url
from service.runner import GrindRunner

app = typer.Typer(help="Vanity keypair grinder")


def _setup_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def _load_or_exit(config_path: Optional[str], overrides: dict[str, object] | None = None) -> ServiceConfig:
    try:
        return load_config(config_path, overrides=overrides)
    except FileNotFoundError as e:
        typer.secho(f"❌ Config file not found: {e}", fg=typer.colors.RED, err=True)
        raise typer.Exit(1)
    except ConfigError as e:
        typer.secho(f"❌ {e}", fg=typer.colors.RED, err=True)
        raise typer.Exit(1)


@app.command()
def run(
    config_path: Optional[str] = typer.Option(None, "--config", help="Optional YAML config file"),
    pattern: Optional[str] = typer.Option(None, help="Suffix pattern, e.g. 'abc:1'"),
    threads: Optional[int] = typer.Option(None, help="Thread hint for the worker (0 = default)"),
    sleep: Optional[float] = typer.Option(None, help="Seconds to pause between iterations"),
    max_iterations: Optional[int] = typer.Option(None, help="Stop after N iterations"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging"),
) -> None:
    """Grind for vanity keypairs until interrupted."""
    _setup_logging(verbose)
    config = _load_or_exit(
        config_path,
        overrides={
            "pattern": pattern,
            "num_threads": threads,
            "sleep_between_loops": sleep,
            "max_iterations": max_iterations,
        },
    )

    try:
        runner = GrindRunner(config)
        summary = runner.run()
    except ToolMissingError as e:
        typer.secho(f"❌ {e}", fg=typer.colors.RED, err=True)
        raise typer.Exit(1)
    except WorkspaceError as e:
        typer.secho(f"❌ {e}", fg=typer.colors.RED, err=True)
        raise typer.Exit(1)
    except OSError as e:
        # metrics directory or config snapshot not writable
        typer.secho(f"❌ Cannot write run files: {e}", fg=typer.colors.RED, err=True)
        raise typer.Exit(1)

    if summary.get("status") == "completed":
        typer.secho("\n✅ Grind loop finished", fg=typer.colors.GREEN)
    else:
        typer.secho("\n⚠️  Grind loop interrupted", fg=typer.colors.YELLOW)


@app.command()
def check(
    config_path: Optional[str] = typer.Option(None, "--config", help="Optional YAML config file"),
    store: bool = typer.Option(False, "--store", help="Also verify the store is reachable"),
) -> None:
    """Check that the search tool (and optionally the store) is available."""
    config = _load_or_exit(config_path)

    missing = find_missing_tools([config.keygen_bin])
    if missing:
        typer.secho(f"❌ Not found in PATH: {', '.join(missing)}", fg=typer.colors.RED, err=True)
        raise typer.Exit(1)
    typer.secho(f"✅ {config.keygen_bin} found", fg=typer.colors.GREEN)

    if store:
        with KeypairStore(config.database_url) as keypairs:
            try:
                count = keypairs.count()
            except StoreError as e:
                typer.secho(f"❌ Store unavailable: {e}", fg=typer.colors.RED, err=True)
                raise typer.Exit(1)
        typer.secho(
            f"✅ Store reachable ({redact_database_url(config.database_url)}, {count} keypairs)",
            fg=typer.colors.GREEN,
        )


@app.command("init-store")
def init_store(
    config_path: Optional[str] = typer.Option(None, "--config", help="Optional YAML config file"),
) -> None:
    """Create the keypair table if it does not exist."""
    config = _load_or_exit(config_path)
    with KeypairStore(config.database_url) as keypairs:
        try:
            keypairs.ensure_schema()
        except StoreError as e:
            typer.secho(f"❌ {e}", fg=typer.colors.RED, err=True)
            raise typer.Exit(1)
    typer.secho("✅ Keypair table ready", fg=typer.colors.GREEN)


@app.command("list-retained")
def list_retained(
    config_path: Optional[str] = typer.Option(None, "--config", help="Optional YAML config file"),
) -> None:
    """List workspaces kept on disk after failed iterations."""
    config = _load_or_exit(config_path)
    workspaces = WorkspaceManager(config.workspace_root).list_retained()

    if not workspaces:
        typer.secho("No retained workspaces.", fg=typer.colors.YELLOW)
        return

    typer.secho(f"\n📁 Found {len(workspaces)} retained workspace(s):\n", fg=typer.colors.BLUE)
    for workspace in workspaces:
        keypairs = sorted(p.name for p in workspace.glob("*.json"))
        typer.echo(f"  {workspace}")
        typer.echo(f"    Keypairs: {len(keypairs)} | Log: {'✓' if (workspace / 'grind.log').exists() else '✗'}")


@app.command()
def recover(
    workspace: Path = typer.Argument(..., help="Retained workspace to re-process"),
    config_path: Optional[str] = typer.Option(None, "--config", help="Optional YAML config file"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging"),
) -> None:
    """Re-insert the keypairs of a retained workspace; removes it when all succeed."""
    _setup_logging(verbose)
    if not workspace.is_dir():
        typer.secho(f"❌ Workspace not found: {workspace}", fg=typer.colors.RED, err=True)
        raise typer.Exit(1)

    config = _load_or_exit(config_path)
    try:
        runner = GrindRunner(config, echo=typer.echo)
        runner.preflight()
    except ToolMissingError as e:
        typer.secho(f"❌ {e}", fg=typer.colors.RED, err=True)
        raise typer.Exit(1)
    except OSError as e:
        typer.secho(f"❌ Cannot write run files: {e}", fg=typer.colors.RED, err=True)
        raise typer.Exit(1)

    report = runner.recover(workspace)
    if report.outcome is WorkspaceOutcome.CLEAN:
        typer.secho(f"✅ Recovered {len(report.artifacts)} keypair(s); workspace removed", fg=typer.colors.GREEN)
    else:
        typer.secho(f"⚠️  Workspace kept: {workspace}", fg=typer.colors.YELLOW)
        raise typer.Exit(1)


if __name__ == "__main__":
    app()
