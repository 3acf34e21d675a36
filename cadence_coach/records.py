"""
Activity log record definition shared by the CSV and SQLite loggers.
"""
from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional, Tuple

LOG_COLUMNS: Tuple[str, ...] = (
    "participant_id",
    "session_id",
    "timestamp",
    "elapsed_time_sec",
    "cadence_spm",
    "baseline_cadence",
    "cadence_deviation",
    "cadence_state",
)

BASELINE_STATE = "BASELINE"


def format_timestamp(dt: Optional[datetime] = None) -> str:
    """Local date-time with millisecond precision, e.g. 2026-10-19 15:45:02.123."""
    dt = dt or datetime.now()
    return dt.strftime("%Y-%m-%d %H:%M:%S.") + f"{dt.microsecond // 1000:03d}"


@dataclass(frozen=True)
class LogRecord:
    """One activity log row. The deviation is always derived, never supplied."""
    participant_id: int
    session_id: str
    timestamp: str
    elapsed_time_sec: int
    cadence_spm: int
    baseline_cadence: int
    cadence_state: str
    cadence_deviation: int = field(init=False)

    def __post_init__(self) -> None:
        object.__setattr__(self, "cadence_deviation", int(self.cadence_spm) - int(self.baseline_cadence))

    def as_row(self) -> tuple:
        """Values in LOG_COLUMNS order."""
        return tuple(getattr(self, c) for c in LOG_COLUMNS)
