import sys
from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest

# Ensure the packages are importable during tests without installation
ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from studyclock.tracker.ledger import SessionLedger  # noqa: E402
from studyclock.tracker.snapshots import SnapshotManager  # noqa: E402
from studyclock.tracker.storage import MemoryStore  # noqa: E402
from studyclock.tracker.timers import StudyTimer  # noqa: E402


class ManualClock:
    """Wall clock that only moves when told to."""

    def __init__(self, start: datetime) -> None:
        self.current = start

    def now(self) -> datetime:
        return self.current

    def advance(self, seconds: int) -> datetime:
        self.current += timedelta(seconds=seconds)
        return self.current

    def set(self, value: datetime) -> None:
        self.current = value


@pytest.fixture
def clock():
    return ManualClock(datetime(2024, 3, 1, 10, 0, 0, tzinfo=timezone.utc))


@pytest.fixture
def store():
    return MemoryStore()


@pytest.fixture
def ledger(store):
    return SessionLedger(store)


@pytest.fixture
def timer(store, ledger, clock):
    return StudyTimer(SnapshotManager(store), ledger, clock=clock)
