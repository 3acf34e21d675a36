"""
Step Event Acquisition Module.
Turns live accelerometer data (Phyphox) or recorded step logs into
timestamped step events on the local millisecond clock.
"""
import logging
import math
import os
from collections import deque
from typing import Callable, List, Optional

import numpy as np
import pandas as pd
import requests

from cadence_coach import config as cfg
from cadence_coach.errors import SensorUnavailableError
from cadence_coach.scheduler import monotonic_ms

logger = logging.getLogger(__name__)


class StepDetector:
    """
    Peak/valley step detector on the acceleration magnitude.
    The magnitude is DC-blocked over a sliding window, low-pass filtered with a
    7-tap triangular kernel and compared against a dynamic mean threshold. A
    maximum followed by a minimum (or vice versa) that both clear
    `min_step_amplitude` counts as one step.
    """

    LP_KERNEL = np.array([1, 2, 3, 4, 3, 2, 1], dtype=np.float64) / 16.0

    def __init__(self, norm_window_size: int = 20, threshold_window_size: int = 10,
                 min_step_amplitude: float = 0.8) -> None:
        self.norm_window_size = norm_window_size
        self.threshold_window_size = threshold_window_size
        self.min_step_amplitude = min_step_amplitude
        self.reset()

    def reset(self) -> None:
        self.norm_buffer = deque(maxlen=self.norm_window_size)
        self.lp_buffer = deque([0.0] * len(self.LP_KERNEL), maxlen=len(self.LP_KERNEL))
        self.threshold_buffer = deque(maxlen=self.threshold_window_size)
        self.last_filtered = 0.0
        self.last_slope = 0
        self.last_peak = 0
        self.peak_pair = [0, 0]
        self.step_count = 0

    def process_sample(self, ax: float, ay: float, az: float) -> bool:
        """Feeds one accelerometer sample. Returns True when it completes a step."""
        mag = math.sqrt(ax * ax + ay * ay + az * az)
        self.norm_buffer.append(mag)
        self.lp_buffer.appendleft(mag - sum(self.norm_buffer) / len(self.norm_buffer))
        filtered = float(np.dot(self.LP_KERNEL, np.asarray(self.lp_buffer)))

        slope = 1 if filtered > self.last_filtered else -1
        self.threshold_buffer.append(filtered)
        threshold = sum(self.threshold_buffer) / len(self.threshold_buffer)

        candidate = 0
        if slope == -1 and self.last_slope == 1:
            candidate = 1   # maximum
        elif slope == 1 and self.last_slope == -1:
            candidate = -1  # minimum

        self.last_filtered = filtered
        self.last_slope = slope

        # Warm-up
        if len(self.norm_buffer) < self.norm_window_size or len(self.threshold_buffer) < self.threshold_window_size:
            return False
        if candidate == 0:
            return False

        amp = self.min_step_amplitude
        if candidate == 1 and self.last_peak == -1:
            if filtered > threshold and filtered > amp:
                self.peak_pair[0] = 1
                self.last_peak = 1
        elif candidate == -1 and self.last_peak == 1:
            if filtered < threshold and filtered < -amp:
                self.peak_pair[1] = -1
                self.last_peak = -1
        elif self.last_peak == 0:
            if (candidate == 1 and filtered > amp) or (candidate == -1 and filtered < -amp):
                self.last_peak = candidate

        if self.peak_pair[0] * self.peak_pair[1] == -1:
            self.step_count += 1
            self.peak_pair = [0, 0]
            return True
        return False


class PhyphoxStepStream:
    """
    REST-client for real-time accelerometer extraction from the Phyphox app.
    Detected steps are stamped on the local clock via the offset observed on the
    first received sample.
    """

    def __init__(self, base_url: str, clock: Callable[[], int] = monotonic_ms,
                 fail_limit: int = cfg.SENSOR_FAIL_LIMIT, timeout_s: float = 0.5,
                 detector: Optional[StepDetector] = None) -> None:
        self.base_url = str(base_url).rstrip("/")
        self.clock = clock
        self.fail_limit = int(fail_limit)
        self.timeout_s = timeout_s
        self.detector = detector or StepDetector()
        self.session = requests.Session()
        self.last_t = -1e9
        self.offset_ms: Optional[float] = None
        self.error_count = 0
        logger.info("Connecting to sensor: %s", self.base_url)

    def _url(self) -> str:
        pipe = "%7C"
        return (f"{self.base_url}/get?acc_time={self.last_t}"
                f"&accX={self.last_t}{pipe}acc_time"
                f"&accY={self.last_t}{pipe}acc_time"
                f"&accZ={self.last_t}{pipe}acc_time")

    def _fail(self, reason: str) -> List[int]:
        self.error_count += 1
        if self.error_count % 30 == 0:
            logger.warning("No data from %s (%s). Is Phyphox running?", self.base_url, reason)
        if self.error_count >= self.fail_limit:
            raise SensorUnavailableError(f"No accelerometer data from {self.base_url} after "
                                         f"{self.error_count} attempts ({reason})")
        return []

    def fetch_steps(self) -> List[int]:
        """Polls the Phyphox endpoint and returns newly detected step timestamps (ms)."""
        try:
            r = self.session.get(self._url(), timeout=self.timeout_s)
            r.raise_for_status()
            data = r.json()
        except (requests.RequestException, ValueError) as e:
            return self._fail(str(e))

        buffer = data.get("buffer", {})

        def get_array(key: str) -> list:
            obj = buffer.get(key)
            if isinstance(obj, dict) and "buffer" in obj:
                return obj["buffer"]
            return obj if isinstance(obj, list) else []

        ts, xs, ys, zs = (get_array(k) for k in ("acc_time", "accX", "accY", "accZ"))
        n = min(len(ts), len(xs), len(ys), len(zs))
        if n == 0:
            # Reachable but idle is not a sensor failure
            return []

        self.error_count = 0
        steps = []
        for i in range(n):
            t_s = float(ts[i])
            if self.offset_ms is None:
                self.offset_ms = self.clock() - t_s * 1000.0
            self.last_t = t_s
            if self.detector.process_sample(float(xs[i]), float(ys[i]), float(zs[i])):
                steps.append(int(self.offset_ms + t_s * 1000.0))
        return steps


class ReplayStepStream:
    """
    Offline simulator replaying step times (column `t_ms`) from a CSV file.
    Provides the same `fetch_steps` interface as PhyphoxStepStream.
    """

    def __init__(self, csv_path: str, clock: Callable[[], int] = monotonic_ms, speed: float = 1.0) -> None:
        if not os.path.exists(csv_path):
            raise FileNotFoundError(f"Simulation file missing: {csv_path}")

        df = pd.read_csv(csv_path)
        if "t_ms" not in df.columns:
            raise ValueError(f"{csv_path} has no 't_ms' column")
        self.t_ms = df["t_ms"].dropna().astype(np.int64).sort_values().to_numpy()
        self.clock = clock
        self.speed = float(max(0.05, speed))
        self.origin_ms = int(clock())
        self.i = 0
        self.n = len(self.t_ms)
        logger.info("Simulation loaded: %d steps from %s", self.n, csv_path)

    @property
    def exhausted(self) -> bool:
        return self.i >= self.n

    def fetch_steps(self) -> List[int]:
        """Returns every recorded step whose replay time has come."""
        elapsed = (self.clock() - self.origin_ms) * self.speed
        end = int(np.searchsorted(self.t_ms, elapsed, side="right"))
        out = [self.origin_ms + int(t / self.speed) for t in self.t_ms[self.i:end]]
        self.i = max(self.i, end)
        return out
