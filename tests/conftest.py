"""
Shared pytest configuration.

This file ensures the project root is on sys.path so that `import status_pin`
works consistently in all tests.
"""

import sys
from pathlib import Path
from typing import Any

import pytest


# Ensure project root is importable for test modules.
ROOT_DIR = Path(__file__).resolve().parents[1]
if str(ROOT_DIR) not in sys.path:
    sys.path.insert(0, str(ROOT_DIR))

from status_pin.settings import Settings  # noqa: E402
from tests.utils import FakeUpstream, FakeWatchBackend  # noqa: E402


@pytest.fixture
def upstream() -> FakeUpstream:
    return FakeUpstream()


@pytest.fixture
def watch_backend() -> FakeWatchBackend:
    return FakeWatchBackend()


@pytest.fixture
def make_settings(tmp_path: Path):
    def _make(**overrides: Any) -> Settings:
        values: dict[str, Any] = {
            "openclaw_home": tmp_path / "openclaw",
            "telegram_bot_token": "123456:test-token",
            "openrouter_api_key": "sk-or-test",  # pragma: allowlist secret
            "chat_id_override": None,
            "context_window_override": None,
            "state_file": tmp_path / "state" / "pin-state.json",
            "registry_debounce_ms": 10,
            "log_poll_interval": 0.01,
            "watcher_restart_delay": 0.01,
            "log_dir": tmp_path / "logs",
        }
        values.update(overrides)
        return Settings(_env_file=None, **values)

    return _make
