"""
Baseline calibration.
Freezes the runner's natural cadence once, a fixed delay after activity start.
"""
from dataclasses import dataclass
from typing import Optional

from cadence_coach import config as cfg


@dataclass(frozen=True)
class Baseline:
    """Personal reference cadence for one session."""
    value: int = 0
    calculated: bool = False


class BaselineCalibrator:
    """Holds the calibration window and the single baseline sample."""

    def __init__(self, delay_ms: int = cfg.BASELINE_DELAY_MS) -> None:
        self.delay_ms = int(delay_ms)
        self.started_ms: Optional[int] = None
        self.baseline = Baseline()

    @property
    def due_at(self) -> Optional[int]:
        """Clock time at which the baseline sample is taken."""
        if self.started_ms is None:
            return None
        return self.started_ms + self.delay_ms

    def start(self, now_ms: int) -> None:
        self.started_ms = int(now_ms)
        self.baseline = Baseline()

    def sample(self, current_cadence: int) -> Baseline:
        """Freezes the given cadence as baseline. Later calls return the frozen value."""
        if not self.baseline.calculated:
            self.baseline = Baseline(value=max(0, int(current_cadence)), calculated=True)
        return self.baseline

    def is_calculated(self) -> bool:
        return self.baseline.calculated

    def reset(self) -> None:
        """Back to uncalculated; called when the session stops."""
        self.started_ms = None
        self.baseline = Baseline()
