"""
Shared fixtures and fakes for the Cadence Coach test-suite.
"""
import sys
from pathlib import Path

# Ensure Python can find the 'cadence_coach' package from the root directory
ROOT = Path(__file__).resolve().parent.parent
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

import pytest

from cadence_coach.scheduler import ManualClock, Scheduler


class RecordingFeedback:
    """FeedbackSink fake that records every call in order."""

    def __init__(self):
        self.calls = []

    def start_beat(self, cadence_spm):
        self.calls.append(("start_beat", cadence_spm))

    def stop_beat(self):
        self.calls.append(("stop_beat",))

    def play_cadence_up(self):
        self.calls.append(("up",))

    def play_cadence_down(self):
        self.calls.append(("down",))

    def play_cadence_recovered(self):
        self.calls.append(("recovered",))

    def names(self):
        return [c[0] for c in self.calls]


class MemoryLog:
    """ActivityLog fake keeping rows in a list."""

    def __init__(self):
        self.records = []

    def append(self, record):
        self.records.append(record)

    def close(self):
        pass


@pytest.fixture
def clock():
    return ManualClock(0)


@pytest.fixture
def scheduler(clock):
    return Scheduler(clock)


@pytest.fixture
def feedback():
    return RecordingFeedback()


@pytest.fixture
def memory_log():
    return MemoryLog()
