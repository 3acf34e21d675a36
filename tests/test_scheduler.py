"""
Unit tests for the cooperative scheduler.
"""
import pytest

from cadence_coach.scheduler import ManualClock, Scheduler


def test_call_later_runs_once_when_due(clock, scheduler):
    ran = []
    scheduler.call_later(1000, lambda: ran.append(clock()))
    clock.advance(999)
    assert scheduler.run_pending() == 0
    clock.advance(1)
    assert scheduler.run_pending() == 1
    clock.advance(5000)
    scheduler.run_pending()
    assert ran == [1000]


def test_cancelled_task_never_runs(clock, scheduler):
    ran = []
    handle = scheduler.call_later(500, lambda: ran.append(1))
    handle.cancel()
    handle.cancel()
    clock.advance(1000)
    scheduler.run_pending()
    assert ran == []
    assert len(scheduler) == 0


def test_call_every_keeps_fixed_rate(clock, scheduler):
    ran = []
    scheduler.call_every(2000, lambda: ran.append(clock()))
    for _ in range(7):
        clock.advance(1000)
        scheduler.run_pending()
    assert ran == [2000, 4000, 6000]


def test_call_every_first_delay(clock, scheduler):
    ran = []
    scheduler.call_every(375, lambda: ran.append(clock()), first_delay_ms=0)
    scheduler.run_pending()
    assert ran == [0]


def test_periodic_cancel_from_inside(clock, scheduler):
    ran = []
    holder = {}

    def job():
        ran.append(clock())
        if len(ran) == 2:
            holder["h"].cancel()

    holder["h"] = scheduler.call_every(100, job)
    for _ in range(10):
        clock.advance(100)
        scheduler.run_pending()
    assert ran == [100, 200]


def test_failing_task_does_not_stop_later_runs(clock, scheduler):
    ran = []

    def flaky():
        ran.append(clock())
        raise RuntimeError("boom")

    scheduler.call_every(1000, flaky)
    for _ in range(3):
        clock.advance(1000)
        scheduler.run_pending()
    assert ran == [1000, 2000, 3000]


def test_ties_run_in_submission_order(clock, scheduler):
    order = []
    scheduler.call_later(100, lambda: order.append("a"))
    scheduler.call_later(100, lambda: order.append("b"))
    clock.advance(100)
    scheduler.run_pending()
    assert order == ["a", "b"]


def test_invalid_period_rejected(scheduler):
    with pytest.raises(ValueError):
        scheduler.call_every(0, lambda: None)


def test_next_due_skips_cancelled(clock, scheduler):
    h = scheduler.call_later(100, lambda: None)
    scheduler.call_later(300, lambda: None)
    h.cancel()
    assert scheduler.next_due() == 300


def test_run_forever_stops_on_request():
    sched = Scheduler(ManualClock(0))
    polls = []

    def poll():
        polls.append(1)
        if len(polls) == 3:
            sched.stop()

    sched.run_forever(poll, interval_s=0.0)
    assert len(polls) == 3


def test_call_every_catches_up_after_stall(clock, scheduler):
    ran = []
    scheduler.call_every(500, lambda: ran.append(clock()))
    clock.advance(2000)
    assert scheduler.run_pending() == 4


def test_skip_missed_drops_runs_after_stall(clock, scheduler):
    ran = []
    handle = scheduler.call_every(375, lambda: ran.append(clock()), first_delay_ms=0, skip_missed=True)
    scheduler.run_pending()
    clock.advance(2000)
    assert scheduler.run_pending() == 1
    # Back on the original 375 ms grid
    assert handle.due_ms == 2250
    clock.set(2250)
    assert scheduler.run_pending() == 1
    assert ran == [0, 2000, 2250]
