"""
Session controller.
Owns the session context (identity, baseline, generation) and wires the
estimator, calibrator, state machine, feedback sink and activity logs onto one
scheduler timeline.
"""
import logging
import uuid
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, List, Optional, Sequence

from cadence_coach import config as cfg
from cadence_coach.baseline import Baseline, BaselineCalibrator
from cadence_coach.errors import PersistenceWriteError
from cadence_coach.features import CadenceEstimator
from cadence_coach.policy import CadenceStateMachine, FeedbackDispatcher, FeedbackState, StateListener
from cadence_coach.records import BASELINE_STATE, LogRecord, format_timestamp
from cadence_coach.scheduler import Scheduler, TaskHandle

logger = logging.getLogger(__name__)


class SessionStatus(Enum):
    NOT_STARTED = "not started"
    MEASURING_BASELINE = "measuring baseline"
    ACTIVE = "active"


@dataclass(frozen=True)
class Session:
    session_id: str
    participant_id: int
    start_ms: int


def new_session_id() -> str:
    return uuid.uuid4().hex


def _log_status(msg: str, **fields: Any) -> None:
    context = " ".join(f"{k}={v}" for k, v in fields.items() if v is not None)
    if context:
        logger.info("%s [%s]", msg, context)
    else:
        logger.info(msg)


class SessionController:
    """
    Start/stop lifecycle and tick wiring.

    Every scheduled callback captures the generation it was created in and does
    nothing once `stop()` (or a restart) has moved the generation on.
    """

    def __init__(
        self,
        scheduler: Scheduler,
        feedback,
        logs: Sequence = (),
        estimator: Optional[CadenceEstimator] = None,
        calibrator: Optional[BaselineCalibrator] = None,
        machine: Optional[CadenceStateMachine] = None,
        tick_ms: int = cfg.TICK_MS,
        status_reporter: Optional[Callable[..., None]] = None,
        timestamp_fn: Callable[[], str] = format_timestamp,
    ) -> None:
        self.scheduler = scheduler
        self.feedback = feedback
        self.logs = list(logs)
        self.estimator = estimator or CadenceEstimator()
        self.calibrator = calibrator or BaselineCalibrator()
        self.machine = machine or CadenceStateMachine()
        self.tick_ms = int(tick_ms)
        self.status_reporter = status_reporter or _log_status
        self.timestamp_fn = timestamp_fn

        self.session: Optional[Session] = None
        self.status = SessionStatus.NOT_STARTED
        self.no_signal = False
        self.generation = 0
        self.write_failures = 0
        self._baseline_task: Optional[TaskHandle] = None
        self._tick_task: Optional[TaskHandle] = None
        self._observers: List[StateListener] = []

        self.machine.subscribe(FeedbackDispatcher(self.feedback, lambda: self.baseline.value))
        self.machine.subscribe(self._notify_observers)

    # --- Observers ---
    def add_observer(self, observer: StateListener) -> None:
        """Registers a UI-side listener for state changes."""
        self._observers.append(observer)

    def _notify_observers(self, change) -> None:
        for observer in list(self._observers):
            observer(change)

    # --- Read-only views ---
    @property
    def baseline(self) -> Baseline:
        return self.calibrator.baseline

    @property
    def state(self) -> FeedbackState:
        return self.machine.state

    @property
    def running(self) -> bool:
        return self.session is not None

    def _report(self, msg: str) -> None:
        s = self.session
        try:
            self.status_reporter(
                msg,
                phase=self.status.value,
                session_id=s.session_id if s else None,
                participant_id=s.participant_id if s else None,
                no_signal=self.no_signal,
            )
        except Exception:
            logger.exception("Status reporter failed for %r", msg)

    # --- Lifecycle ---
    def start(self, participant_id: int) -> Session:
        """Begins a session: resets the estimator and schedules the baseline capture."""
        participant_id = int(participant_id)
        if participant_id < 1:
            raise ValueError(f"participant_id must be >= 1, got {participant_id}")
        if self.running:
            self.stop()

        now = self.scheduler.now()
        self.generation += 1
        gen = self.generation
        self.session = Session(new_session_id(), participant_id, now)
        self.no_signal = False
        self.estimator.reset(now)
        self.calibrator.start(now)
        self.machine.reset()

        self._baseline_task = self.scheduler.call_later(
            self.calibrator.delay_ms, lambda: self._on_baseline_due(gen), name="baseline")
        self.status = SessionStatus.MEASURING_BASELINE
        self._report(f"⏱ Measuring baseline for participant {participant_id}...")
        return self.session

    def stop(self) -> None:
        """Ends the session; pending baseline and tick tasks become inert."""
        if self.session is None:
            return
        self.generation += 1
        for task in (self._baseline_task, self._tick_task):
            if task is not None:
                task.cancel()
        self._baseline_task = None
        self._tick_task = None
        self.feedback.stop_beat()
        self.calibrator.reset()
        self.machine.reset()
        self.status = SessionStatus.NOT_STARTED
        self._report("⏹ Session stopped.")
        self.session = None

    def on_step(self, ts_ms: int) -> None:
        """Step events from the sensor; ignored while no session runs."""
        if self.session is None:
            return
        self.estimator.on_step(ts_ms)

    def sensor_lost(self, reason: str) -> None:
        """Reports a missing sensor once; cadence decays to 0 through staleness."""
        if self.no_signal:
            return
        self.no_signal = True
        self._report(f"📡 No signal: {reason}")

    def sensor_recovered(self) -> None:
        if self.no_signal:
            self.no_signal = False
            self._report("📡 Sensor signal restored.")

    # --- Scheduled work ---
    def _is_current(self, gen: int) -> bool:
        return self.session is not None and gen == self.generation

    def _elapsed_sec(self, now: int) -> int:
        return max(0, (now - self.session.start_ms) // 1000)

    def _on_baseline_due(self, gen: int) -> None:
        if not self._is_current(gen):
            return
        now = self.scheduler.now()
        baseline = self.calibrator.sample(self.estimator.current_cadence(now))
        self._append(baseline.value, BASELINE_STATE, now)

        self.machine.begin(baseline.value, now)
        self.feedback.start_beat(baseline.value)
        self._tick_task = self.scheduler.call_every(self.tick_ms, lambda: self._on_tick(gen), name="tick")
        self.status = SessionStatus.ACTIVE
        if baseline.value > 0:
            self._report(f"✅ Baseline set: {baseline.value} SPM. Cadence coaching active.")
        else:
            self._report("⚠️ Baseline is 0 SPM (no steps during calibration). Feedback disabled.")

    def _on_tick(self, gen: int) -> None:
        if not self._is_current(gen):
            return
        now = self.scheduler.now()
        cadence = self.estimator.current_cadence(now)
        state = self.machine.tick(cadence, now)
        self._append(cadence, state.value, now)

    def _append(self, cadence: int, state_name: str, now: int) -> None:
        record = LogRecord(
            participant_id=self.session.participant_id,
            session_id=self.session.session_id,
            timestamp=self.timestamp_fn(),
            elapsed_time_sec=self._elapsed_sec(now),
            cadence_spm=int(cadence),
            baseline_cadence=self.baseline.value,
            cadence_state=state_name,
        )
        for log in self.logs:
            try:
                log.append(record)
            except PersistenceWriteError as e:
                self.write_failures += 1
                logger.error("Log write failed: %s", e)
                self._report(f"❌ Log write failed: {e}")
