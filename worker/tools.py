"""
Startup checks for external tools.
"""

from __future__ import annotations

import shutil
from collections.abc import Iterable

REQUIRED_TOOLS = ["solana-keygen"]


class ToolMissingError(RuntimeError):
    def __init__(self, missing: list[str]) -> None:
        self.missing: list[str] = missing
        names = ", ".join(missing)
        super().__init__(f"Required tool(s) not found in PATH: {names}")


def find_missing_tools(tools: Iterable[str] | None = None) -> list[str]:
    return [name for name in (tools or REQUIRED_TOOLS) if shutil.which(name) is None]


def require_tools(tools: Iterable[str] | None = None) -> None:
    """Raise ToolMissingError if any tool is not executable from PATH."""
    missing = find_missing_tools(tools)
    if missing:
        raise ToolMissingError(missing)
