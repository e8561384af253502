"""Test configuration for pytest."""

from pathlib import Path

import pytest

from manasx.config import get_settings
from manasx.models import (
    CommentRecommendations,
    NamingRecommendations,
    PatternProfile,
    Recommendations,
)


class FakeTimer:
    """Timer handle returned by :class:`FakeScheduler`."""

    def __init__(self, delay, fn, args):
        self.delay = delay
        self.fn = fn
        self.args = args
        self.cancelled = False

    def cancel(self):
        self.cancelled = True


class FakeScheduler:
    """Stands in for ``loop.call_later``; timers only fire when told to."""

    def __init__(self):
        self.timers = []

    def __call__(self, delay, fn, *args):
        timer = FakeTimer(delay, fn, args)
        self.timers.append(timer)
        return timer

    @property
    def active(self):
        return [t for t in self.timers if not t.cancelled]

    def fire_all(self):
        due = self.active
        self.timers = []
        for timer in due:
            timer.fn(*timer.args)


class FakeObserver:
    """Records watchdog observer calls without starting a thread."""

    instances = []

    def __init__(self):
        self.scheduled = []
        self.started = False
        self.stopped = False
        FakeObserver.instances.append(self)

    def schedule(self, handler, path, recursive=False):
        self.scheduled.append((path, recursive))

    def start(self):
        self.started = True

    def stop(self):
        self.stopped = True

    def join(self, timeout=None):
        pass


@pytest.fixture
def write_file(tmp_path):
    """Write a file relative to tmp_path, creating parent directories."""

    def _write(relative: str, content: str = "") -> Path:
        path = tmp_path / relative
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(content, encoding="utf-8")
        return path

    return _write


@pytest.fixture
def settings(tmp_path):
    """Settings watching tmp_path, isolated from any .env file."""
    return get_settings(_env_file=None, watch_directory=str(tmp_path), debounce_ms=50)


@pytest.fixture
def fake_scheduler():
    return FakeScheduler()


@pytest.fixture
def fake_observer_factory():
    FakeObserver.instances = []
    return FakeObserver


@pytest.fixture
def camel_profile():
    """A profile that expects camelCase variables and functions and nothing else."""
    return PatternProfile(
        files_analyzed=60,
        recommendations=Recommendations(
            naming=NamingRecommendations(variables="camelCase", functions="camelCase"),
        ),
    )


@pytest.fixture
def commented_profile():
    """A profile expecting dense single-line comments."""
    return PatternProfile(
        files_analyzed=20,
        recommendations=Recommendations(
            comments=CommentRecommendations(style="single", density="high"),
        ),
    )
