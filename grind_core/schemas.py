from __future__ import annotations

import re
from collections.abc import Mapping
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import TypeVar

from pydantic import BaseModel, Field, field_validator

TBaseSchema = TypeVar("TBaseSchema", bound="BaseSchema")

_PATTERN_RE = re.compile(r"^(?P<suffix>[^:]+):(?P<count>\d+)$")


class BaseSchema(BaseModel):
    def to_json(self) -> str:
        return self.model_dump_json()

    def to_dict(self) -> dict[str, object]:
        return self.model_dump()

    @classmethod
    def from_json(cls: type[TBaseSchema], data: str) -> TBaseSchema:
        return cls.model_validate_json(data)

    @classmethod
    def from_dict(cls: type[TBaseSchema], data: Mapping[str, object]) -> TBaseSchema:
        return cls.model_validate(data)


class GrindConfig(BaseSchema):
    """Settings for the search worker and the per-iteration loop."""

    pattern: str = "audio:1"
    num_threads: int | None = Field(default=None, ge=0)
    sleep_between_loops: float = Field(default=0.0, ge=0)
    use_passphrase: bool = False
    keygen_bin: str = "solana-keygen"
    workspace_root: str | None = None
    grind_timeout_s: float | None = Field(default=None, gt=0)
    log_preview_lines: int = Field(default=200, ge=0)

    @field_validator("pattern")
    @classmethod
    def validate_pattern(cls, value: str) -> str:
        value = value.strip()
        match = _PATTERN_RE.match(value)
        if match is None:
            raise ValueError(f"pattern must look like SUFFIX:COUNT, got {value!r}")
        if int(match.group("count")) < 1:
            raise ValueError("pattern match count must be at least 1")
        return value

    @field_validator("num_threads")
    @classmethod
    def zero_threads_means_default(cls, value: int | None) -> int | None:
        if value == 0:
            return None
        return value

    @property
    def suffix(self) -> str:
        return self.pattern.split(":", 1)[0]


class SearchStatus(str, Enum):
    SUCCESS = "success"
    WORKER_FAILED = "worker_failed"
    ANOMALOUS_EMPTY_SUCCESS = "anomalous_empty_success"


class ArtifactStatus(str, Enum):
    INSERTED = "inserted"
    DUPLICATE = "duplicate"
    DERIVATION_FAILED = "derivation_failed"
    ENCODING_FAILED = "encoding_failed"
    STORAGE_FAILED = "storage_failed"

    @property
    def committed(self) -> bool:
        return self in (ArtifactStatus.INSERTED, ArtifactStatus.DUPLICATE)


class WorkspaceOutcome(str, Enum):
    CLEAN = "clean"
    DEGRADED = "degraded"
    DISCARDED = "discarded"


@dataclass(frozen=True)
class SearchOutcome:
    status: SearchStatus
    workspace: Path
    log_path: Path
    artifacts: tuple[Path, ...] = ()
    returncode: int | None = None
    runtime_ms: float = 0.0
    error: str | None = None

    @property
    def succeeded(self) -> bool:
        return self.status is SearchStatus.SUCCESS


@dataclass
class DerivationResult:
    success: bool
    public_key: str | None
    error: str | None
    runtime_ms: float


@dataclass(frozen=True)
class ArtifactResult:
    path: Path
    status: ArtifactStatus
    public_key: str | None = None
    error: str | None = None


@dataclass
class IterationReport:
    iteration: int
    workspace: Path
    search: SearchOutcome
    artifacts: list[ArtifactResult] = field(default_factory=list)
    outcome: WorkspaceOutcome = WorkspaceOutcome.DISCARDED
    runtime_ms: float = 0.0

    def count(self, status: ArtifactStatus) -> int:
        return sum(1 for result in self.artifacts if result.status is status)

    @property
    def failed_artifacts(self) -> list[ArtifactResult]:
        return [result for result in self.artifacts if not result.status.committed]

    def to_record(self) -> dict[str, object]:
        return {
            "iteration": self.iteration,
            "workspace": str(self.workspace),
            "search_status": self.search.status.value,
            "returncode": self.search.returncode,
            "search_runtime_ms": self.search.runtime_ms,
            "outcome": self.outcome.value,
            "runtime_ms": self.runtime_ms,
            "artifacts": [
                {
                    "path": str(result.path),
                    "status": result.status.value,
                    "public_key": result.public_key,
                    "error": result.error,
                }
                for result in self.artifacts
            ],
        }
