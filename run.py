#!/usr/bin/env python3
"""
Vanity grinder launcher.

Usage:
  python run.py run                        # grind with settings from the environment
  python run.py run --pattern abc:1        # override the suffix pattern
  python run.py run --threads 8 --sleep 5  # thread hint and pause between iterations
  python run.py check --store              # verify solana-keygen and the store
  python run.py list-retained              # show workspaces kept after failures
  python run.py recover /tmp/solkeygrind.x # re-insert a retained workspace
  python run.py --help                     # show help

Settings are read from the environment (PATTERN, NUM_THREADS,
SLEEP_BETWEEN_LOOPS, USE_BIP39_PASSPHRASE, DATABASE_URL, ...). A ``.env`` file
next to this script is loaded first without overriding existing variables.
"""

import os
from pathlib import Path


def load_env_file(env_path: Path | None = None) -> None:
    """Load KEY=VALUE lines from .env into os.environ (existing values win)."""
    env_path = env_path or Path(__file__).parent / ".env"
    if env_path.exists():
        with open(env_path, encoding="utf-8") as f:
            for line in f:
                line = line.strip()
                if line and not line.startswith("#") and "=" in line:
                    key, value = line.split("=", 1)
                    key = key.strip()
                    value = value.strip().strip('"').strip("'")
                    if key and value and key not in os.environ:
                        os.environ[key] = value


def main() -> None:
    load_env_file()

    from service.cli import app

    app()


if __name__ == "__main__":
    main()
