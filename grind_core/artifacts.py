"""
Artifact decoding and the per-artifact persistence gate.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Sequence
from pathlib import Path
from typing import Protocol, cast

from store.database import StoreError
from store.repository import PRIVATE_KEY_LENGTH, KeypairRecord

from .schemas import ArtifactResult, ArtifactStatus, DerivationResult

logger = logging.getLogger(__name__)

SECRET_HEX_LENGTH = PRIVATE_KEY_LENGTH * 2


class EncodingError(ValueError):
    """Artifact contents cannot be turned into a 64-byte secret."""


class PublicKeyDeriver(Protocol):
    def derive_public_key(self, artifact: Path) -> DerivationResult:
        ...


class KeypairSink(Protocol):
    def insert(self, record: KeypairRecord) -> bool:
        ...


def normalize_byte(value: int) -> int:
    """Fold any integer into 0..255 the way a signed or unsigned byte would wrap."""
    return (value + 256) % 256


def encode_secret(values: Sequence[int]) -> str:
    """Return the lowercase hex encoding of ``values`` after byte normalization."""
    for value in values:
        if isinstance(value, bool) or not isinstance(value, int):
            raise EncodingError(f"Keypair entries must be integers, got {value!r}")
    encoded = bytes(normalize_byte(value) for value in values).hex()
    if len(encoded) != SECRET_HEX_LENGTH:
        raise EncodingError(
            f"Expected {SECRET_HEX_LENGTH} hex characters, got {len(encoded)}"
        )
    return encoded


def decode_secret(hex_secret: str) -> bytes:
    try:
        secret = bytes.fromhex(hex_secret)
    except ValueError as exc:
        raise EncodingError(f"Invalid hex secret: {exc}") from exc
    if len(secret) != PRIVATE_KEY_LENGTH:
        raise EncodingError(f"Expected {PRIVATE_KEY_LENGTH} bytes, got {len(secret)}")
    return secret


def load_secret_values(artifact: Path) -> list[int]:
    """Read the JSON integer array the search tool writes for each keypair."""
    try:
        with open(artifact, "r", encoding="utf-8") as f:
            loaded = cast(object, json.load(f))
    except (OSError, UnicodeDecodeError) as exc:
        raise EncodingError(f"Cannot read {artifact}: {exc}") from exc
    except json.JSONDecodeError as exc:
        raise EncodingError(f"Invalid JSON in {artifact}: {exc}") from exc
    if not isinstance(loaded, list):
        raise EncodingError(f"Expected a JSON array in {artifact}")
    return cast(list[int], loaded)


class ArtifactProcessor:
    """Derive, encode and store one artifact; every failure becomes a status."""

    def __init__(self, deriver: PublicKeyDeriver, sink: KeypairSink) -> None:
        self.deriver = deriver
        self.sink = sink

    def process(self, artifact: Path) -> ArtifactResult:
        derived = self.deriver.derive_public_key(artifact)
        public_key = derived.public_key
        if not derived.success or not public_key:
            return ArtifactResult(
                artifact,
                ArtifactStatus.DERIVATION_FAILED,
                error=derived.error or "public key derivation failed",
            )

        try:
            hex_secret = encode_secret(load_secret_values(artifact))
            record = KeypairRecord(public_key=public_key, private_key=decode_secret(hex_secret))
        except (EncodingError, ValueError) as exc:
            return ArtifactResult(
                artifact, ArtifactStatus.ENCODING_FAILED, public_key=public_key, error=str(exc)
            )

        try:
            inserted = self.sink.insert(record)
        except StoreError as exc:
            return ArtifactResult(
                artifact, ArtifactStatus.STORAGE_FAILED, public_key=public_key, error=str(exc)
            )

        status = ArtifactStatus.INSERTED if inserted else ArtifactStatus.DUPLICATE
        return ArtifactResult(artifact, status, public_key=public_key)

    def process_all(self, artifacts: Sequence[Path]) -> list[ArtifactResult]:
        results: list[ArtifactResult] = []
        for artifact in artifacts:
            result = self.process(artifact)
            if not result.status.committed:
                logger.warning(
                    "Artifact %s failed (%s): %s", artifact, result.status.value, result.error
                )
            results.append(result)
        return results
