import sys
from pathlib import Path

import pytest

# Ensure the 'src' directory is on sys.path for imports in tests
ROOT = Path(__file__).resolve().parents[1]
SRC = ROOT / "src"
if str(SRC) not in sys.path:
    sys.path.insert(0, str(SRC))


@pytest.fixture(autouse=True)
def _isolated_env(tmp_path, monkeypatch):
    # Per-test storage; no network unless a test injects a ledger
    monkeypatch.setenv("CHAINTRACK_STORAGE_DIR", str(tmp_path / "storage"))
    monkeypatch.setenv("CHAINTRACK_ONCHAIN_VERIFY", "false")
    yield
