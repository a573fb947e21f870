"""
Central pytest configuration for this project.

This file is automatically discovered by pytest and is intended for:

- **Fixtures**: reusable objects or setup logic shared across multiple test files.

Notes
-----
- Contributors should install the package in editable mode
  (`pip install -e .[test]`) so that imports are resolved consistently in
  local dev and CI environments.
- Keep this file focused on test setup. Do not add application logic here.
"""

from datetime import datetime, timedelta, timezone

import pytest

from rhythmstair.staircase import StaircaseConfig

T0 = datetime(2024, 1, 1, 12, 0, 0, tzinfo=timezone.utc)


class FakeClock:
    """Deterministic clock advancing one second per call."""

    def __init__(self, start=T0, step=timedelta(seconds=1)):
        self.now = start
        self.step = step

    def __call__(self):
        current = self.now
        self.now = current + self.step
        return current


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def single_step_config():
    """40 start, fixed step of 8, 2-down-1-up."""
    return StaircaseConfig(
        initial_level=40.0,
        initial_step_size=8.0,
        step_sizes=(8.0,),
        min_level=0.0,
        max_level=80.0,
        target_reversals=6,
        min_trials=6,
        max_trials=50,
    )


@pytest.fixture
def hearing_responses():
    """
    Responses that converge a hearing staircase at trial 14 with reversal
    levels 32, 40, 28, 32, 30, 32 dB.
    """
    c, i = True, False
    return [c, c, i, c, c, c, c, i, i, c, c, i, c, c]
