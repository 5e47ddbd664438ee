"""Per-iteration metrics written as JSON lines."""

from __future__ import annotations

import json
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from grind_core.schemas import IterationReport


class MetricsWriter:
    """Appends one JSON record per loop iteration."""

    def __init__(self, path: str | Path):
        self.path = Path(path)
        self.path.parent.mkdir(parents=True, exist_ok=True)

    def write(self, report: IterationReport) -> None:
        entry = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            **report.to_record(),
        }
        with open(self.path, "a", encoding="utf-8") as f:
            f.write(json.dumps(entry) + "\n")

    def load(self) -> list[dict[str, Any]]:
        """Load all records written so far.

        Returns:
            List of record dictionaries in write order
        """
        if not self.path.exists():
            return []

        records = []
        with open(self.path, "r", encoding="utf-8") as f:
            for line in f:
                if line.strip():
                    records.append(json.loads(line))

        return records
