"""
Configuration module for the Cadence Coach system.
Defines central file paths, network endpoints, cadence thresholds and timing constants.
"""
import os

# --- PATHS ---
BASE_DIR = os.getcwd()
OUT_DIR = os.path.join(BASE_DIR, "outputs")
DATA_DIR = os.path.join(BASE_DIR, "_data")
SOUNDS_DIR = os.path.join(DATA_DIR, "sounds")

CSV_LOG_PATH = os.path.join(OUT_DIR, "cadence_log_participants.csv")
DB_PATH = os.path.join(OUT_DIR, "live_session.db")
SIM_DATA_FILE = os.path.join(OUT_DIR, "demo_steps.csv")
CONTROL_JSON = os.path.join(OUT_DIR, "control.json")
PID_FILE = os.path.join(OUT_DIR, "backend.pid")

# --- NETWORK ---
DEFAULT_PHYPHOX_URL = "http://10.9.4.80:8080"

# --- CADENCE ESTIMATION ---
MIN_STEP_INTERVAL_MS = 200      # > 300 SPM is sensor chatter
SMOOTHING_KEEP = 0.6
SMOOTHING_GAIN = 0.4
STALE_AFTER_MS = 2500

# --- CALIBRATION ---
BASELINE_DELAY_MS = 30_000

# --- FEEDBACK STATE MACHINE ---
TICK_MS = 2000
TOLERANCE = 0.05
RISE_DELTA = 5
DROP_DELTA = -5
STOP_THRESHOLD_SPM = 15
STOP_TIMEOUT_MS = 5000
RECOVERY_TIME_MS = 5000
RECOVERY_CONFIRM_TICKS = 2   # consecutive in-band ticks before OK

# --- RUNTIME ---
POLL_INTERVAL = 0.03
SENSOR_FAIL_LIMIT = 150

# --- AUDIO ---
SAMPLE_RATE = 44100
BEAT_VOLUME = 0.8
FEEDBACK_VOLUME = 1.0
CUE_FILES = {
    "beat": "beat.wav",
    "cadence_up": "cadence_up.wav",
    "cadence_down": "cadence_down.wav",
    "cadence_recovered": "cadence_recovered.wav",
}

# --- FEATURE FLAGS ---
ENABLE_AUDIO = True
ENABLE_SQLITE_LOG = True
