"""
Pytest configuration and fixtures for little-bat tests.

This module provides:
- A controllable clock for the event loop
- A MagicMock curses window whose getch() replays scripted keys
- A palette that maps color names to themselves for easy assertions
- Root logger isolation, since setup_logging() replaces root handlers
"""

import logging
from unittest.mock import MagicMock

import pytest

from little_bat import BatterySnapshot, DisplayConfig


class FakeClock:
    """Monotonic clock that only moves when told to."""

    def __init__(self, start=100.0):
        self.now = start

    def __call__(self):
        return self.now

    def advance(self, seconds):
        self.now += seconds


PALETTE = {name: name for name in ('default', 'dim', 'green', 'yellow', 'red')}


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def palette():
    return dict(PALETTE)


@pytest.fixture
def screen(clock):
    """
    Provide a mock curses window.

    Append key codes to ``screen.keys``. Each getch() pops one; -1 stands for
    a timeout and advances the clock by the last timeout() value. Once the
    script runs out getch() returns 'q' so a broken loop cannot spin forever.
    """
    scr = MagicMock()
    scr.getmaxyx.return_value = (24, 80)
    scr.keys = []
    waits = {'ms': -1}

    def timeout(ms):
        waits['ms'] = ms

    def getch():
        key = scr.keys.pop(0) if scr.keys else ord('q')
        if key == -1:
            clock.advance(waits['ms'] / 1000)
        return key

    scr.timeout.side_effect = timeout
    scr.getch.side_effect = getch
    return scr


@pytest.fixture
def snapshot():
    return BatterySnapshot(percentage=85, charging=False)


@pytest.fixture
def config():
    return DisplayConfig()


@pytest.fixture(autouse=True)
def restore_root_logger():
    root = logging.getLogger()
    handlers = list(root.handlers)
    level = root.level
    yield
    root.handlers = handlers
    root.setLevel(level)
