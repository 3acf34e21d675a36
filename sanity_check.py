"""
Diagnostic utility tool for the Cadence Coach project environment.
Verifies cue sounds, replay data, output folders and the audio mixer
prior to application launch.
"""
import sys
from pathlib import Path

# Ensure Python can find the 'cadence_coach' package from the root directory
ROOT = Path(__file__).resolve().parent
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

import os
import pygame
from cadence_coach import config as cfg

EXPECTED_FILES = {
    **{f"Cue: {kind}": os.path.join(cfg.SOUNDS_DIR, fn) for kind, fn in cfg.CUE_FILES.items()},
    "Demo Steps": cfg.SIM_DATA_FILE,
    "Backend Script": "main.py",
    "Dashboard Script": "dashboard.py",
}


def check_step(name: str, filepath: str) -> bool:
    """Verifies absolute file existence."""
    if os.path.exists(filepath):
        print(f"✅ {name:24} -> FOUND")
        return True

    print(f"❌ {name:24} -> MISSING! (Expected: {filepath})")
    return False


def run_diagnostics() -> bool:
    """Executes the master diagnostic suite."""
    print("=" * 50)
    print("   CADENCE COACH SYSTEM DIAGNOSTICS")
    print("=" * 50 + "\n")

    # 1. Structure Check: Create folders dynamically if they don't exist
    for folder in [cfg.OUT_DIR, cfg.DATA_DIR, cfg.SOUNDS_DIR]:
        os.makedirs(folder, exist_ok=True)

    # 2. File Check
    results = {label: check_step(label, path) for label, path in EXPECTED_FILES.items()}

    print("\n" + "-" * 30)

    # 3. Audio System Check
    audio_ok = True
    try:
        pygame.mixer.init(frequency=cfg.SAMPLE_RATE, size=-16, channels=1)
        pygame.mixer.quit()
        print("✅ Audio System        -> READY")
    except pygame.error as e:
        audio_ok = False
        print(f"❌ Audio System        -> ERROR: {e}")

    print("\n" + "=" * 50)

    # 4. Conclusion
    cues_ok = all(v for k, v in results.items() if k.startswith("Cue:"))
    if all(results.values()) and audio_ok:
        print("STATUS: ALL SYSTEMS GO!")
        print("   Start now: streamlit run dashboard.py")
    else:
        print("ACTION REQUIRED:")
        if not cues_ok:
            print("   -> Run: python scripts/generate_cues.py (cues are synthesised on the fly until then)")
        if not results["Demo Steps"]:
            print("   -> Run: python scripts/generate_demo.py")
        if not audio_ok:
            print("   -> Check the audio output device; the backend will run silently.")
    return all(results.values()) and audio_ok


if __name__ == "__main__":
    run_diagnostics()
