"""Service configuration from YAML, environment variables and CLI overrides."""

from __future__ import annotations

import os
from collections.abc import Mapping
from pathlib import Path
from typing import Any
from urllib.parse import urlsplit, urlunsplit

import yaml
from pydantic import Field, ValidationError

from grind_core.schemas import GrindConfig


# Environment variable -> config field
ENV_FIELDS: dict[str, str] = {
    "PATTERN": "pattern",
    "NUM_THREADS": "num_threads",
    "SLEEP_BETWEEN_LOOPS": "sleep_between_loops",
    "USE_BIP39_PASSPHRASE": "use_passphrase",
    "DATABASE_URL": "database_url",
    "KEYGEN_BIN": "keygen_bin",
    "GRIND_WORKSPACE_ROOT": "workspace_root",
    "GRIND_TIMEOUT": "grind_timeout_s",
    "GRIND_LOG_PREVIEW_LINES": "log_preview_lines",
    "GRIND_METRICS_PATH": "metrics_path",
    "GRIND_MAX_ITERATIONS": "max_iterations",
}


class ConfigError(ValueError):
    """Configuration could not be loaded or failed validation."""


class ServiceConfig(GrindConfig):
    """Grind settings plus the store and bookkeeping options of a running service."""

    # Required for inserts, but only checked when the first insert happens
    database_url: str = ""

    # Optional JSONL file with one record per iteration
    metrics_path: str | None = None

    max_iterations: int | None = Field(default=None, ge=1)


def config_from_env(environ: Mapping[str, str] | None = None) -> dict[str, str]:
    """Collect config values from the environment; empty variables are ignored."""
    source = os.environ if environ is None else environ
    values: dict[str, str] = {}
    for env_name, field_name in ENV_FIELDS.items():
        raw = source.get(env_name)
        if raw is None or raw.strip() == "":
            continue
        values[field_name] = raw.strip()
    return values


def _load_yaml(yaml_path: str | Path) -> dict[str, Any]:
    yaml_path = Path(yaml_path)
    if not yaml_path.exists():
        raise FileNotFoundError(f"Config file not found: {yaml_path}")
    with open(yaml_path, "r", encoding="utf-8") as f:
        data = yaml.safe_load(f)
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigError(f"Config file must contain a mapping: {yaml_path}")
    return data


def load_config(
    yaml_path: str | Path | None = None,
    environ: Mapping[str, str] | None = None,
    overrides: Mapping[str, object] | None = None,
) -> ServiceConfig:
    """Build the effective configuration.

    Precedence, lowest first: field defaults, the YAML file, environment
    variables, then ``overrides`` (CLI options). ``None`` overrides are
    skipped so unset CLI options fall through.

    Raises:
        FileNotFoundError: If ``yaml_path`` does not exist
        ConfigError: If the merged values fail validation
    """
    data: dict[str, object] = {}
    if yaml_path is not None:
        data.update(_load_yaml(yaml_path))
    data.update(config_from_env(environ))
    if overrides:
        data.update({key: value for key, value in overrides.items() if value is not None})

    try:
        return ServiceConfig.from_dict(data)
    except ValidationError as e:
        raise ConfigError(f"Invalid configuration: {e}") from e


def save_config(config: ServiceConfig, yaml_path: str | Path) -> None:
    """Write the configuration to YAML with the database password redacted."""
    yaml_path = Path(yaml_path)
    yaml_path.parent.mkdir(parents=True, exist_ok=True)

    data = config.to_dict()
    data["database_url"] = redact_database_url(config.database_url)

    with open(yaml_path, "w", encoding="utf-8") as f:
        yaml.dump(data, f, default_flow_style=False, sort_keys=False, indent=2)


def redact_database_url(url: str) -> str:
    if not url:
        return ""
    parts = urlsplit(url)
    if parts.password is None:
        return url
    netloc = parts.netloc.replace(f":{parts.password}@", ":<redacted>@", 1)
    return urlunsplit(parts._replace(netloc=netloc))
