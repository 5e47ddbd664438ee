import sys
from pathlib import Path

import pytest

from store.repository import KeypairStore

FAKE_KEYGEN = """
import json
import os
import sys
import time
from pathlib import Path

mode = os.environ.get("FAKE_KEYGEN_MODE", "ok")
args = sys.argv[1:]

if args[0] == "grind":
    Path("argv.txt").write_text(" ".join(args))
    print("Searching for", args[args.index("--ends-with") + 1])
    if mode == "fail":
        print("resource temporarily unavailable", file=sys.stderr)
        sys.exit(3)
    if mode == "empty":
        sys.exit(0)
    count = int(os.environ.get("FAKE_KEYGEN_COUNT", "1"))
    for i in range(count):
        values = [(i + j) % 256 for j in range(64)]
        Path(f"Key{i}ab.json").write_text(json.dumps(values))
        print(f"Wrote keypair to Key{i}ab.json")
    if mode == "stall":
        sys.stdout.flush()
        time.sleep(30)
elif args[0] == "pubkey":
    if mode == "nopubkey":
        print("cannot read keypair", file=sys.stderr)
        sys.exit(1)
    print(Path(args[1]).stem)
else:
    sys.exit(2)
"""


@pytest.fixture
def fake_keygen(tmp_path: Path) -> Path:
    """Executable stand-in for solana-keygen driven by FAKE_KEYGEN_* variables."""
    bin_dir = tmp_path / "bin"
    bin_dir.mkdir()
    script = bin_dir / "fake-keygen"
    script.write_text(f"#!{sys.executable}\n{FAKE_KEYGEN}", encoding="utf-8")
    script.chmod(0o755)
    return script


@pytest.fixture
def sqlite_url(tmp_path: Path) -> str:
    return f"sqlite:///{tmp_path / 'keys.db'}"


@pytest.fixture
def store(sqlite_url: str):
    keypairs = KeypairStore(sqlite_url)
    yield keypairs
    keypairs.close()
