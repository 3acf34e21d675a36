"""
Feedback Cue Generator.
Renders the metronome click and the cadence up / down / recovered cues to WAV
files so they can be replaced or tuned without touching the engine.
"""
import sys
from pathlib import Path

# Ensure Python can find the 'cadence_coach' package from the root directory
ROOT = Path(__file__).resolve().parent.parent
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

import os
import soundfile as sf

from cadence_coach import config as cfg
from cadence_coach.audio_engine import CUE_KINDS, synth_cue


def write_cues(out_dir: str = cfg.SOUNDS_DIR, sr: int = cfg.SAMPLE_RATE, overwrite: bool = False) -> list:
    """Writes one 16-bit WAV per cue kind. Returns the written paths."""
    os.makedirs(out_dir, exist_ok=True)
    written = []
    for kind in CUE_KINDS:
        path = os.path.join(out_dir, cfg.CUE_FILES[kind])
        if os.path.exists(path) and not overwrite:
            print(f"⏭  {path} exists, skipping")
            continue
        sf.write(path, synth_cue(kind, sr), sr, subtype="PCM_16")
        written.append(path)
        print(f"✅ {path}")
    return written


if __name__ == "__main__":
    write_cues(overwrite="--force" in sys.argv)
