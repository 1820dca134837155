import os
from datetime import datetime, timezone

import pytest

from cadence.application.config import SchedulerConfig


@pytest.fixture(autouse=True)
def mock_home(tmp_path, monkeypatch):
    """Points HOME at a temp dir and clears CADENCE_* variables to isolate config."""
    home = tmp_path / "home"
    home.mkdir()
    monkeypatch.setenv("HOME", str(home))
    for key in list(os.environ):
        if key.startswith("CADENCE_"):
            monkeypatch.delenv(key)
    return home


@pytest.fixture
def now():
    return datetime(2026, 10, 18, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def config():
    return SchedulerConfig()
