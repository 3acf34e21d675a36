"""
Synthetic step-event generator for the Cadence Coach replay mode.
Produces realistic step timestamps over several pace phases, including timing
jitter, double-fired sensor chatter and occasional missed steps.
"""
import sys
from pathlib import Path

# Ensure Python can find the 'cadence_coach' package from the root directory
ROOT = Path(__file__).resolve().parent.parent
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

import os
import numpy as np
import pandas as pd

from cadence_coach import config as cfg

SEED = 7
JITTER_MS = 12.0
CHATTER_P = 0.03
MISS_P = 0.02

# (duration_s, spm_start, spm_end, label)
PHASES = [
    (40, 160, 160, "Calibration"),
    (20, 160, 176, "Speeding up"),
    (15, 176, 160, "Settling"),
    (20, 160, 140, "Slowing down"),
    (15, 140, 160, "Recovering"),
    (10, 0,   0,   "Standing"),
    (20, 160, 160, "Running"),
]


def generate(seed: int = SEED) -> pd.DataFrame:
    """Builds the step table consumed by ReplayStepStream."""
    rng = np.random.default_rng(seed)
    records = []
    t_ms = 0.0

    for duration, spm_start, spm_end, label in PHASES:
        phase_end = t_ms + duration * 1000.0
        if spm_start <= 0 and spm_end <= 0:
            t_ms = phase_end
            continue

        while t_ms < phase_end:
            p = 1.0 - (phase_end - t_ms) / (duration * 1000.0)
            spm = spm_start + (spm_end - spm_start) * p
            t_ms += 60_000.0 / spm
            if rng.random() < MISS_P:
                continue
            stamp = int(round(t_ms + rng.normal(0.0, JITTER_MS)))
            records.append({"t_ms": stamp, "phase": label, "spm_true": round(spm, 1)})
            if rng.random() < CHATTER_P:
                records.append({"t_ms": stamp + int(rng.integers(20, 120)), "phase": label,
                                "spm_true": round(spm, 1)})

    return pd.DataFrame(records).sort_values("t_ms").reset_index(drop=True)


def main() -> None:
    print("Generating synthetic step events...")
    df = generate()
    os.makedirs(os.path.dirname(cfg.SIM_DATA_FILE), exist_ok=True)
    df.to_csv(cfg.SIM_DATA_FILE, index=False)
    print(f"Success: File '{cfg.SIM_DATA_FILE}' generated ({len(df)} steps).")


if __name__ == "__main__":
    main()
