"""Tests for the run clock and recurring output tasks."""

from __future__ import annotations

import pytest

from kilonova.core.clock import RecurringTask, RunClock


class TestRunClock:

    def test_advance_by_dt(self):
        clock = RunClock(time=1.0, final_time=2.0)
        clock.advance(0.25)
        assert clock.time == 1.25
        assert clock.iteration == 1
        assert not clock.finished

    def test_advance_lands_on_target(self):
        clock = RunClock(time=0.0, final_time=0.3)
        clock.advance(0.1)
        clock.advance(0.1)
        clock.advance(0.3 - clock.time, to_time=0.3)
        assert clock.time == 0.3
        assert clock.finished


class TestRecurringTask:

    def test_due_times_do_not_drift(self):
        task = RecurringTask(interval=0.1, start_time=1.0)
        for _ in range(1000):
            task.advance()
        assert task.next_time == pytest.approx(1.0 + 1000 * 0.1, rel=1e-15)

    def test_first_occurrence_at_start(self):
        task = RecurringTask(interval=5.0, start_time=2.0)
        assert task.is_due(2.0)
        task.advance()
        assert not task.is_due(6.9)
        assert task.is_due(7.0)

    def test_counts(self):
        task = RecurringTask(interval=1.0, count=3)
        task.advance()
        assert task.count == 4
        assert task.count_this_run == 1

    def test_advance_reports_wall_time(self):
        task = RecurringTask(interval=1.0)
        assert task.advance() >= 0.0

    def test_skip_to(self):
        task = RecurringTask(interval=1.0)
        task.skip_to(3.5)
        assert task.count == 4
        assert task.next_time == 4.0
        assert not task.is_due(3.5)
