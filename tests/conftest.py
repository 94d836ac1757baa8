import os
import sys
from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest

pytest_plugins = ["pytest_asyncio"]

# Ensure project root is on sys.path for direct test execution
ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

# Keep tests off the filesystem unless a test opts in
os.environ.setdefault("RECENTS_STORAGE_BACKEND", "memory")
os.environ.setdefault("ENABLE_FILE_LOGGING", "false")


class FakeClock:
    """Returns a strictly increasing UTC timestamp, one second apart."""

    def __init__(self, start: datetime = datetime(2024, 1, 1, tzinfo=timezone.utc)):
        self.current = start
        self.calls = 0

    def __call__(self) -> datetime:
        self.calls += 1
        self.current = self.current + timedelta(seconds=1)
        return self.current


@pytest.fixture
def clock():
    return FakeClock()
