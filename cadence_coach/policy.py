"""
Feedback Decision Policy Module.
Converts the smoothed cadence plus time into a stable feedback state
(speeding up / slowing down / recovered / stopped) with hysteresis on recovery
and a movement timeout, and dispatches edge-triggered cues.
"""
import logging
import math
from dataclasses import dataclass
from enum import Enum
from typing import Callable, List, Optional, Tuple

from cadence_coach import config as cfg

logger = logging.getLogger(__name__)


class FeedbackState(Enum):
    """Feedback states emitted by the cadence state machine."""
    INIT = "INIT"
    UP = "UP"
    DOWN = "DOWN"
    OK = "OK"
    STOP = "STOP"


@dataclass(frozen=True)
class StateChange:
    """Emitted once per actual state transition."""
    previous: FeedbackState
    current: FeedbackState
    now_ms: int
    cadence: int


StateListener = Callable[[StateChange], None]


def tolerance_band(baseline: int, tolerance: float = cfg.TOLERANCE) -> Tuple[int, int]:
    """Returns the (lower, upper) SPM band around the baseline."""
    return (int(math.floor(baseline * (1.0 - tolerance))),
            int(math.floor(baseline * (1.0 + tolerance))))


class CadenceStateMachine:
    """
    Evaluated once per monitoring tick.

    UP and DOWN are flagged immediately. Returning to OK from UP or DOWN requires
    `recovery_time_ms` of recovery, ending in at least `recovery_confirm_ticks`
    consecutive in-band ticks. The streak is counted from the last tick before the
    runner turned back toward the band; out-of-band ticks that keep closing the gap
    stay part of it. While DOWN a rising delta is not read as UP, and while UP a
    falling delta is not read as DOWN. From INIT or
    STOP an in-band reading is OK at once. STOP overrides everything once no tick
    has seen movement for `stop_timeout_ms`.
    """

    def __init__(
        self,
        tolerance: float = cfg.TOLERANCE,
        rise_delta: int = cfg.RISE_DELTA,
        drop_delta: int = cfg.DROP_DELTA,
        stop_threshold_spm: int = cfg.STOP_THRESHOLD_SPM,
        stop_timeout_ms: int = cfg.STOP_TIMEOUT_MS,
        recovery_time_ms: int = cfg.RECOVERY_TIME_MS,
        recovery_confirm_ticks: int = cfg.RECOVERY_CONFIRM_TICKS,
    ) -> None:
        self.tolerance = float(tolerance)
        self.rise_delta = int(rise_delta)
        self.drop_delta = int(drop_delta)
        self.stop_threshold_spm = int(stop_threshold_spm)
        self.stop_timeout_ms = int(stop_timeout_ms)
        self.recovery_time_ms = int(recovery_time_ms)
        self.recovery_confirm_ticks = max(1, int(recovery_confirm_ticks))

        self._listeners: List[StateListener] = []
        self.reset()

    def reset(self) -> None:
        """Disarms the machine; state returns to INIT."""
        self.state = FeedbackState.INIT
        self.baseline = 0
        self.previous_cadence = 0
        self.last_movement_ms: Optional[int] = None
        self.stable_start_ms: Optional[int] = None
        self.in_band_ticks = 0
        self.last_tick_ms: Optional[int] = None

    def subscribe(self, listener: StateListener) -> None:
        self._listeners.append(listener)

    def unsubscribe(self, listener: StateListener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    @property
    def band(self) -> Tuple[int, int]:
        return tolerance_band(self.baseline, self.tolerance)

    def begin(self, baseline: int, now_ms: int) -> None:
        """Arms the machine for monitoring against a freshly calculated baseline."""
        self.reset()
        self.baseline = max(0, int(baseline))
        self.previous_cadence = self.baseline
        self.last_movement_ms = int(now_ms)
        self.last_tick_ms = int(now_ms)

    def tick(self, cadence: int, now_ms: int) -> FeedbackState:
        cadence = max(0, int(cadence))
        now_ms = int(now_ms)

        if self.baseline <= 0 or self.last_movement_ms is None:
            # No reference: keep INIT, nothing to compare
            self.previous_cadence = cadence
            self.last_tick_ms = now_ms
            return self.state

        moving = cadence >= self.stop_threshold_spm
        if moving:
            self.last_movement_ms = now_ms

        if now_ms - self.last_movement_ms >= self.stop_timeout_ms:
            self._clear_recovery()
            self._commit(FeedbackState.STOP, now_ms, cadence)
        elif not moving:
            self._clear_recovery()
        else:
            self._evaluate_band(cadence, now_ms)

        self.previous_cadence = cadence
        self.last_tick_ms = now_ms
        return self.state

    def _evaluate_band(self, cadence: int, now_ms: int) -> None:
        lower, upper = self.band
        was_moving = self.previous_cadence >= self.stop_threshold_spm
        delta = cadence - self.previous_cadence if was_moving else 0
        # A rise while DOWN (or a drop while UP) is the runner correcting
        rising = delta >= self.rise_delta and self.state is not FeedbackState.DOWN
        dropping = delta <= self.drop_delta and self.state is not FeedbackState.UP

        if cadence > upper or rising:
            target = FeedbackState.UP
        elif cadence < lower or dropping:
            target = FeedbackState.DOWN
        else:
            self._candidate_ok(cadence, now_ms)
            return

        if target is self.state and self._approaching(delta):
            # Still outside the band but heading back toward it
            self._start_recovery()
            self.in_band_ticks = 0
            return
        self._clear_recovery()
        self._commit(target, now_ms, cadence)

    def _approaching(self, delta: int) -> bool:
        if self.state is FeedbackState.DOWN:
            return delta > 0
        if self.state is FeedbackState.UP:
            return delta < 0
        return False

    def _candidate_ok(self, cadence: int, now_ms: int) -> None:
        if self.state in (FeedbackState.INIT, FeedbackState.STOP):
            self._clear_recovery()
            self._commit(FeedbackState.OK, now_ms, cadence)
            return
        if self.state is FeedbackState.OK:
            return
        self._start_recovery()
        self.in_band_ticks += 1
        if (self.in_band_ticks >= self.recovery_confirm_ticks
                and now_ms - self.stable_start_ms >= self.recovery_time_ms):
            self._clear_recovery()
            self._commit(FeedbackState.OK, now_ms, cadence)

    def _start_recovery(self) -> None:
        if self.stable_start_ms is None:
            self.stable_start_ms = self.last_tick_ms

    def _clear_recovery(self) -> None:
        self.stable_start_ms = None
        self.in_band_ticks = 0

    def _commit(self, target: FeedbackState, now_ms: int, cadence: int) -> None:
        if target is self.state:
            return
        change = StateChange(previous=self.state, current=target, now_ms=now_ms, cadence=cadence)
        self.state = target
        logger.debug("State %s -> %s at %d ms (cadence %d)", change.previous.value,
                     change.current.value, now_ms, cadence)
        for listener in list(self._listeners):
            try:
                listener(change)
            except Exception:
                logger.exception("State listener failed on %s", target.value)


class FeedbackDispatcher:
    """Maps state transitions onto the audio feedback sink."""

    def __init__(self, sink, baseline_provider: Callable[[], int]):
        self.sink = sink
        self.baseline_provider = baseline_provider

    def __call__(self, change: StateChange) -> None:
        if change.previous is FeedbackState.STOP and change.current is not FeedbackState.STOP:
            # Movement resumed: bring the metronome back
            self.sink.start_beat(self.baseline_provider())

        if change.current is FeedbackState.UP:
            self.sink.play_cadence_up()
        elif change.current is FeedbackState.DOWN:
            self.sink.play_cadence_down()
        elif change.current is FeedbackState.OK:
            self.sink.play_cadence_recovered()
        elif change.current is FeedbackState.STOP:
            self.sink.stop_beat()
