"""
Unit tests for the cadence feedback state machine and cue dispatching.
"""
from cadence_coach.policy import (
    CadenceStateMachine,
    FeedbackDispatcher,
    FeedbackState,
    tolerance_band,
)

S = FeedbackState


def armed(baseline=160, now=0):
    sm = CadenceStateMachine()
    events = []
    sm.subscribe(events.append)
    sm.begin(baseline, now)
    return sm, events


def run_ticks(sm, cadences, start=2000, period=2000):
    states = []
    t = start
    for c in cadences:
        states.append(sm.tick(c, t))
        t += period
    return states


def transitions(events):
    return [(e.previous, e.current) for e in events]


def test_tolerance_band():
    assert tolerance_band(160) == (152, 168)
    assert tolerance_band(0) == (0, 0)


def test_rise_above_baseline_flags_up_once():
    """Baseline 160, cadence 168 x3: the +8 jump flags UP on the first tick only."""
    sm, events = armed(160)
    assert run_ticks(sm, [168, 168, 168]) == [S.UP, S.UP, S.UP]
    assert transitions(events) == [(S.INIT, S.UP)]


def test_above_upper_bound_is_up():
    sm, events = armed(160)
    run_ticks(sm, [160, 169])
    assert sm.state is S.UP


def test_rise_delta_flags_up_inside_band():
    sm, events = armed(160)
    assert run_ticks(sm, [160, 166]) == [S.OK, S.UP]


def test_drop_delta_flags_down_inside_band():
    sm, events = armed(160)
    assert run_ticks(sm, [160, 155]) == [S.OK, S.DOWN]


def test_recovery_requires_sustained_band():
    """DOWN at 150, then three gentle in-band ticks before OK fires."""
    sm, events = armed(160)
    states = run_ticks(sm, [150, 153, 155, 157])
    assert states == [S.DOWN, S.DOWN, S.DOWN, S.OK]
    assert transitions(events) == [(S.INIT, S.DOWN), (S.DOWN, S.OK)]


def test_recovery_timer_resets_when_streak_breaks():
    sm, events = armed(160)
    states = run_ticks(sm, [150, 153, 155, 150, 153, 155, 157])
    assert states == [S.DOWN, S.DOWN, S.DOWN, S.DOWN, S.DOWN, S.DOWN, S.OK]
    assert [e.current for e in events] == [S.DOWN, S.OK]


def test_recovery_from_down_with_closing_ticks(feedback):
    """DOWN, then 150 (still low but rising), 155, 158: OK on the third tick, one cue."""
    sm, events = armed(160)
    sm.subscribe(FeedbackDispatcher(feedback, lambda: 160))
    assert sm.tick(140, 2000) is S.DOWN
    states = [sm.tick(c, t) for c, t in ((150, 4000), (155, 6000), (158, 8000))]
    assert states == [S.DOWN, S.DOWN, S.OK]
    assert transitions(events) == [(S.INIT, S.DOWN), (S.DOWN, S.OK)]
    assert feedback.names().count("recovered") == 1
    assert "up" not in feedback.names()


def test_rise_while_down_is_not_flagged_up():
    sm, events = armed(160)
    sm.tick(140, 2000)
    assert sm.tick(155, 4000) is S.DOWN
    assert S.UP not in [e.current for e in events]


def test_overshoot_while_down_is_up():
    sm, events = armed(160)
    sm.tick(140, 2000)
    assert sm.tick(175, 4000) is S.UP


def test_single_in_band_tick_does_not_recover():
    """A long approach from far below still needs two in-band ticks."""
    sm, events = armed(160)
    states = run_ticks(sm, [100, 110, 120, 130, 140, 150, 155, 157])
    assert states[-2] is S.DOWN
    assert states[-1] is S.OK


def test_moving_away_resets_closing_streak():
    sm, events = armed(160)
    states = run_ticks(sm, [140, 150, 145, 155, 158, 159])
    assert states == [S.DOWN, S.DOWN, S.DOWN, S.DOWN, S.DOWN, S.OK]


def test_recovery_from_up():
    sm, events = armed(160)
    states = run_ticks(sm, [170, 167, 165, 163])
    assert states == [S.UP, S.UP, S.UP, S.OK]


def test_in_band_from_init_is_ok_immediately():
    sm, events = armed(160)
    assert sm.tick(160, 2000) is S.OK
    assert transitions(events) == [(S.INIT, S.OK)]


def test_stop_after_no_movement():
    sm, events = armed(160)
    states = run_ticks(sm, [160, 0, 0, 0])
    assert states == [S.OK, S.OK, S.OK, S.STOP]
    assert sm.tick(10, 10_000) is S.STOP
    assert sm.tick(14, 12_000) is S.STOP
    assert sm.tick(160, 14_000) is S.OK
    assert transitions(events) == [(S.INIT, S.OK), (S.OK, S.STOP), (S.STOP, S.OK)]


def test_stop_overrides_band_state():
    sm, events = armed(160)
    run_ticks(sm, [150, 10, 5, 0])
    assert sm.state is S.STOP


def test_resume_after_stop_is_not_a_surge():
    sm, events = armed(160)
    run_ticks(sm, [0, 0, 0])
    assert sm.state is S.STOP
    # From 0 to 160 is not read as a +160 delta
    assert sm.tick(160, 8000) is S.OK


def test_zero_baseline_stays_init():
    sm, events = armed(0)
    assert run_ticks(sm, [160, 0, 0, 0, 200]) == [S.INIT] * 5
    assert events == []


def test_unarmed_machine_stays_init():
    sm = CadenceStateMachine()
    assert sm.tick(180, 2000) is S.INIT


def test_never_emits_identical_consecutive_events():
    sm, events = armed(160)
    run_ticks(sm, [175, 176, 150, 149, 148, 155, 156, 157, 158, 0, 0, 0, 0, 160, 170, 171, 160, 160, 160])
    assert events
    for a, b in zip(events, events[1:]):
        assert a.current != b.current
    for e in events:
        assert e.previous != e.current


def test_listener_failure_does_not_break_tick():
    sm = CadenceStateMachine()

    def boom(change):
        raise RuntimeError("ui exploded")

    seen = []
    sm.subscribe(boom)
    sm.subscribe(seen.append)
    sm.begin(160, 0)
    assert sm.tick(180, 2000) is S.UP
    assert len(seen) == 1


def test_dispatcher_maps_states_to_cues(feedback):
    sm, _ = armed(160)
    sm.subscribe(FeedbackDispatcher(feedback, lambda: 160))
    run_ticks(sm, [170, 150, 153, 155, 157, 0, 0, 0, 160])
    assert feedback.calls == [
        ("up",),
        ("down",),
        ("recovered",),
        ("stop_beat",),
        ("start_beat", 160),
        ("recovered",),
    ]
