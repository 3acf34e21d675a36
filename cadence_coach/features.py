"""
Cadence estimation module.
Turns a noisy stream of timestamped step events into a smoothed
steps-per-minute (SPM) estimate with a staleness timeout.
"""
import math
from dataclasses import dataclass

from cadence_coach import config as cfg


@dataclass
class CadenceState:
    """Maintains the temporal state of the runner's cadence."""
    smoothed_cadence: float = 0.0
    last_step_ms: int = 0
    has_step: bool = False


def instant_rate(delta_ms: int) -> float:
    """Converts a step-to-step interval into steps per minute."""
    return 60_000.0 / max(1, int(delta_ms))


def smooth_cadence(prev: float, inst_rate: float,
                   keep: float = cfg.SMOOTHING_KEEP, gain: float = cfg.SMOOTHING_GAIN) -> float:
    """Applies the fixed-weight Exponential Moving Average (EMA)."""
    return keep * prev + gain * inst_rate


class CadenceEstimator:
    """
    Consumes step events and exposes a continuously available cadence reading.

    Only `on_step` and `reset` mutate the state; `current_cadence` is a pure read,
    so the periodic tick can query it at any time.
    """

    def __init__(
        self,
        min_step_interval_ms: int = cfg.MIN_STEP_INTERVAL_MS,
        stale_after_ms: int = cfg.STALE_AFTER_MS,
    ) -> None:
        self.min_step_interval_ms = int(min_step_interval_ms)
        self.stale_after_ms = int(stale_after_ms)
        self.state = CadenceState()
        self.accepted = 0
        self.rejected = 0

    @property
    def smoothed_cadence(self) -> float:
        return self.state.smoothed_cadence

    @property
    def last_step_ms(self) -> int:
        return self.state.last_step_ms

    def reset(self, now_ms: int) -> None:
        """Clears the estimate at the start of an activity session."""
        self.state = CadenceState(smoothed_cadence=0.0, last_step_ms=int(now_ms), has_step=False)
        self.accepted = 0
        self.rejected = 0

    def on_step(self, now_ms: int) -> bool:
        """
        Feeds one detected step. Returns False if the event was rejected as chatter.
        """
        delta_ms = int(now_ms) - self.state.last_step_ms
        if delta_ms < self.min_step_interval_ms:
            self.rejected += 1
            return False

        # Non-monotonic clocks are clamped rather than trusted
        rate = instant_rate(max(1, delta_ms))
        if not self.state.has_step:
            self.state.smoothed_cadence = rate
            self.state.has_step = True
        else:
            self.state.smoothed_cadence = smooth_cadence(self.state.smoothed_cadence, rate)
        self.state.last_step_ms = int(now_ms)
        self.accepted += 1
        return True

    def current_cadence(self, now_ms: int) -> int:
        """Returns the floored SPM estimate, or 0 once no step arrived for the staleness window."""
        if int(now_ms) - self.state.last_step_ms > self.stale_after_ms:
            return 0
        return int(math.floor(max(0.0, self.state.smoothed_cadence)))
