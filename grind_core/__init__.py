"""
Grind Core Module

Orchestration loop for continuous vanity keypair grinding.

This module implements the per-iteration pipeline:
- Isolated workspace per search attempt (removed on success, kept on failure)
- Outcome classification for worker runs (success, failure, empty success)
- Artifact decoding into a canonical 64-byte secret
- Per-artifact persistence with failure isolation
- Sequential retry loop with a configurable pause
"""

__version__ = "0.1.0"

from .schemas import (
    ArtifactResult,
    ArtifactStatus,
    DerivationResult,
    GrindConfig,
    IterationReport,
    SearchOutcome,
    SearchStatus,
    WorkspaceOutcome,
)

__all__ = [
    "ArtifactResult",
    "ArtifactStatus",
    "DerivationResult",
    "GrindConfig",
    "IterationReport",
    "SearchOutcome",
    "SearchStatus",
    "WorkspaceOutcome",
]
