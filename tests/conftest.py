"""Shared test fixtures for the tracker tests."""

from datetime import datetime, timedelta, timezone

import pytest

from pkg.tracker.ids import SequentialIds
from pkg.tracker.workspace import Workspace


class TickingClock:
    """Clock that advances one second per call."""

    def __init__(self, start=None):
        self.now = start or datetime(2024, 1, 1, tzinfo=timezone.utc)

    def __call__(self):
        self.now += timedelta(seconds=1)
        return self.now


@pytest.fixture
def clock():
    return TickingClock()


@pytest.fixture
def ws(clock):
    return Workspace(ids=SequentialIds("T"), clock=clock)
