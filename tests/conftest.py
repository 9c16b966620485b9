# tests/conftest.py
"""
Pytest configuration and fixtures.
Adds src/ to sys.path so `import bookmeter` works without installing.
"""

import sys
from pathlib import Path

import pytest

project_root = Path(__file__).parent.parent
src_root = project_root / "src"
if str(src_root) not in sys.path:
    sys.path.insert(0, str(src_root))


@pytest.fixture(autouse=True)
def _isolated_logs(tmp_path, monkeypatch):
    """Keep run log files out of the working tree."""
    from bookmeter.utils.logging_config import Logger

    monkeypatch.setenv("BOOKMETER_LOG_DIR", str(tmp_path / "logs"))
    Logger.init()
    yield
    Logger.close()


class RecordingSleep:
    """Stand-in for asyncio.sleep that records requested delays."""

    def __init__(self):
        self.delays = []

    async def __call__(self, delay):
        self.delays.append(delay)


@pytest.fixture
def recording_sleep():
    return RecordingSleep()


@pytest.fixture
def no_pacing(recording_sleep):
    from bookmeter.application.services.pacing import PacingPolicy

    return PacingPolicy(sleep=recording_sleep)
