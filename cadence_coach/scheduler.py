"""
Cooperative single-threaded scheduler.
Sensor callbacks, the one-shot baseline action and the periodic monitoring tick
all run on this one timeline, so the cadence state needs no locking.
"""
import heapq
import itertools
import logging
import time
from typing import Callable, List, Optional, Tuple

logger = logging.getLogger(__name__)


def monotonic_ms() -> int:
    """Monotonic wall clock in integer milliseconds."""
    return int(time.monotonic() * 1000)


class ManualClock:
    """Deterministic millisecond clock for simulations and tests."""

    def __init__(self, start_ms: int = 0) -> None:
        self.now_ms = int(start_ms)

    def __call__(self) -> int:
        return self.now_ms

    def advance(self, ms: int) -> int:
        self.now_ms += int(ms)
        return self.now_ms

    def set(self, now_ms: int) -> None:
        self.now_ms = max(self.now_ms, int(now_ms))


class TaskHandle:
    """Handle returned for every scheduled task; `cancel()` makes it inert."""

    def __init__(self, fn: Callable[[], None], due_ms: int, period_ms: Optional[int], name: str,
                 skip_missed: bool = False) -> None:
        self.fn = fn
        self.due_ms = due_ms
        self.period_ms = period_ms
        self.name = name
        self.skip_missed = skip_missed
        self.cancelled = False
        self.runs = 0

    def cancel(self) -> None:
        self.cancelled = True

    @property
    def active(self) -> bool:
        return not self.cancelled and (self.period_ms is not None or self.runs == 0)

    def __repr__(self) -> str:
        return f"TaskHandle({self.name!r}, due={self.due_ms}, period={self.period_ms}, cancelled={self.cancelled})"


class Scheduler:
    """
    Event queue with "run once after" and "run every" support.

    Nothing here sleeps inside a task; waiting happens only between polls in
    `run_forever`. Periodic tasks keep a fixed rate (next due = previous due + period)
    and catch up on runs missed during a stall, unless created with `skip_missed`,
    in which case missed runs are dropped and the task resumes on its original grid.
    """

    def __init__(self, clock: Callable[[], int] = monotonic_ms) -> None:
        self.clock = clock
        self._queue: List[Tuple[int, int, TaskHandle]] = []
        self._seq = itertools.count()
        self._stopped = False

    def now(self) -> int:
        return int(self.clock())

    def __len__(self) -> int:
        return sum(1 for _, _, h in self._queue if not h.cancelled)

    def _push(self, handle: TaskHandle) -> TaskHandle:
        heapq.heappush(self._queue, (handle.due_ms, next(self._seq), handle))
        return handle

    def call_later(self, delay_ms: int, fn: Callable[[], None], name: str = "once") -> TaskHandle:
        due = self.now() + max(0, int(delay_ms))
        return self._push(TaskHandle(fn, due, None, name))

    def call_every(self, period_ms: int, fn: Callable[[], None],
                   first_delay_ms: Optional[int] = None, name: str = "periodic",
                   skip_missed: bool = False) -> TaskHandle:
        period_ms = int(period_ms)
        if period_ms <= 0:
            raise ValueError(f"period_ms must be positive, got {period_ms}")
        first = period_ms if first_delay_ms is None else max(0, int(first_delay_ms))
        return self._push(TaskHandle(fn, self.now() + first, period_ms, name, skip_missed))

    def next_due(self) -> Optional[int]:
        while self._queue and self._queue[0][2].cancelled:
            heapq.heappop(self._queue)
        return self._queue[0][0] if self._queue else None

    def run_pending(self, now_ms: Optional[int] = None) -> int:
        """Runs every task due at or before `now_ms`. Returns how many ran."""
        now_ms = self.now() if now_ms is None else int(now_ms)
        ran = 0
        while self._queue and self._queue[0][0] <= now_ms:
            due, _, handle = heapq.heappop(self._queue)
            if handle.cancelled:
                continue
            handle.runs += 1
            try:
                handle.fn()
            except Exception:
                # A failed run must not stop later runs
                logger.exception("Scheduled task %s failed", handle.name)
            ran += 1
            if handle.period_ms is not None and not handle.cancelled:
                next_due = due + handle.period_ms
                if handle.skip_missed and next_due <= now_ms:
                    next_due = due + ((now_ms - due) // handle.period_ms + 1) * handle.period_ms
                handle.due_ms = next_due
                self._push(handle)
        return ran

    def cancel_all(self) -> None:
        for _, _, handle in self._queue:
            handle.cancel()
        self._queue.clear()

    def stop(self) -> None:
        """Asks `run_forever` to return after the current iteration."""
        self._stopped = True

    def run_forever(self, poll: Optional[Callable[[], None]] = None, interval_s: float = 0.03) -> None:
        """Blocking real-time loop: poll inputs, run due tasks, sleep until next poll."""
        self._stopped = False
        while not self._stopped:
            loop_t0 = time.monotonic()
            if poll is not None:
                poll()
            self.run_pending()
            time.sleep(max(0.0, interval_s - (time.monotonic() - loop_t0)))
