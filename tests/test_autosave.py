"""Tests for pixelpaint.core.autosave – debounced, session-bound saves."""

from __future__ import annotations

from typing import List, Optional

import pytest

from pixelpaint.core.autosave import AutosaveScheduler


class FakeClock:
    def __init__(self) -> None:
        self.now = 100.0

    def __call__(self) -> float:
        return self.now


class Harness:
    def __init__(self) -> None:
        self.current: Optional[str] = "a"
        self.saved: List[str] = []
        self.clock = FakeClock()
        self.scheduler = AutosaveScheduler(
            self.saved.append,
            lambda: self.current,
            delay_ms=400,
            cooldown_ms=1000,
            clock=self.clock,
        )

    def fire(self) -> None:
        """Simulate the quiet period elapsing."""
        self.scheduler._on_timeout()


@pytest.fixture()
def h(qapp) -> Harness:
    return Harness()


class TestSchedule:
    def test_fires_for_current_session(self, h: Harness):
        assert h.scheduler.schedule("a")
        assert h.scheduler.pending_token == "a"
        h.fire()
        assert h.saved == ["a"]
        assert h.scheduler.pending_token is None

    def test_reschedule_saves_once(self, h: Harness):
        h.scheduler.schedule("a")
        h.scheduler.schedule("a")
        h.scheduler.schedule("a")
        h.fire()
        h.fire()
        assert h.saved == ["a"]

    def test_stale_token_is_dropped(self, h: Harness):
        h.scheduler.schedule("a")
        h.current = "b"
        h.fire()
        assert h.saved == []

    def test_no_session(self, h: Harness):
        assert not h.scheduler.schedule(None)

    def test_disabled(self, h: Harness):
        h.scheduler.enabled = False
        assert not h.scheduler.schedule("a")
        assert h.scheduler.pending_token is None

    def test_delay(self, h: Harness):
        assert h.scheduler.delay_ms == 400


class TestCancelAndInvalidate:
    def test_cancel_drops_pending(self, h: Harness):
        h.scheduler.schedule("a")
        h.scheduler.cancel()
        h.fire()
        assert h.saved == []

    def test_invalidate_blocks_for_cooldown(self, h: Harness):
        h.scheduler.schedule("a")
        h.scheduler.invalidate()
        h.fire()
        assert h.saved == []
        assert h.scheduler.is_blocked()
        assert not h.scheduler.schedule("a")

        h.clock.now += 0.999
        assert not h.scheduler.schedule("a")

        h.clock.now += 0.002
        assert not h.scheduler.is_blocked()
        assert h.scheduler.schedule("a")
        h.fire()
        assert h.saved == ["a"]
