"""Shared test fixtures for the CobberSlope test suite.

Provides a session-wide QApplication (rendered offscreen) and small
dataset factories used across the engine and controller tests.
"""

import os
import sys

os.environ.setdefault("QT_QPA_PLATFORM", "offscreen")

import pytest
from PyQt6.QtWidgets import QApplication

from labs.CobberSlopeConfig import Hyperparameters, SlopeLabConfig
from labs.CobberSlopeRun import StepController


@pytest.fixture(scope="session")
def qapp():
    """Session-scoped QApplication, shared by all tests."""
    app = QApplication.instance()
    if app is None:
        app = QApplication(sys.argv)
    yield app


@pytest.fixture
def exact_fit_points():
    return [(1, 2), (2, 4)]


@pytest.fixture
def line_points():
    """Points lying exactly on y = 2x."""
    return [(x, 2 * x) for x in range(1, 6)]


class FakeScheduler:
    """Scheduler stand-in that only fires when the test says so."""

    def __init__(self):
        self.callback = None
        self.interval = None
        self.events = []

    @property
    def is_active(self):
        return self.callback is not None

    def schedule(self, interval_ms, callback):
        self.events.append("schedule")
        self.interval = interval_ms
        self.callback = callback

    def cancel(self):
        self.events.append("cancel")
        self.callback = None

    def fire(self):
        if self.callback is not None:
            return self.callback()
        return None


@pytest.fixture
def fake_scheduler():
    return FakeScheduler()


@pytest.fixture
def controller_factory():
    """Factory fixture: build a StepController with custom settings."""
    def _make(points=((1, 2),), initial_slope=0.0, learning_rate=0.1, max_iterations=30, scheduler=None):
        return StepController(
            data=list(points),
            hyperparameters=Hyperparameters(initial_slope=initial_slope, learning_rate=learning_rate),
            config=SlopeLabConfig(max_iterations=max_iterations),
            scheduler=scheduler,
        )
    return _make
