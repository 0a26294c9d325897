import sys
from pathlib import Path

import pytest

# Ensure the repo root is on sys.path so tests can import the local `src/` package.
ROOT = str(Path(__file__).resolve().parents[1])
if ROOT not in sys.path:
    sys.path.insert(0, ROOT)

_GATE_ENV = (
    "ELASTICSEARCH_URL",
    "SEARCHAPP_REQUIRED_ES_VERSION",
    "SEARCHAPP_GATE_TIMEOUT_S",
    "SEARCHAPP_GATE_RETRIES",
    "SEARCHAPP_GATE_RETRY_BACKOFF_S",
    "SEARCHAPP_VERSION_COMPARISON",
    "SEARCHAPP_ELASTICSEARCH_IMAGE",
    "SEARCHAPP_APP_URL",
    "SEARCHAPP_NO_SERVER_START",
    "RAILS_NO_SERVER_START",
)


@pytest.fixture(autouse=True)
def _clean_gate_env(monkeypatch: pytest.MonkeyPatch) -> None:
    # Developer shells often export ELASTICSEARCH_URL; tests opt in explicitly.
    for name in _GATE_ENV:
        monkeypatch.delenv(name, raising=False)
