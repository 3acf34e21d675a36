"""
Main Orchestrator for Cadence Coach.
Feeds step events into the session controller and drives the scheduler loop:
30 s of baseline calibration, then a feedback tick every 2 s until stopped.
"""
import argparse
import json
import logging
import os
import signal
from typing import Any, Dict, List, Optional

from cadence_coach import config as cfg
from cadence_coach.audio_engine import AudioEngine
from cadence_coach.db import StatusBoard
from cadence_coach.errors import SensorUnavailableError
from cadence_coach.logger_csv import CsvActivityLog
from cadence_coach.logger_sqlite import SQLiteLogger
from cadence_coach.scheduler import Scheduler
from cadence_coach.session import SessionController
from cadence_coach.streams import PhyphoxStepStream, ReplayStepStream

log = logging.getLogger("cadence_coach.main")


def read_control() -> Dict[str, Any]:
    """Settings written by the dashboard, if any."""
    if os.path.exists(cfg.CONTROL_JSON):
        try:
            with open(cfg.CONTROL_JSON, "r") as f:
                data = json.load(f)
            return data if isinstance(data, dict) else {}
        except (OSError, ValueError) as e:
            log.warning("Ignoring unreadable %s: %s", cfg.CONTROL_JSON, e)
    return {}


def parse_args(argv: Optional[list] = None) -> argparse.Namespace:
    control = read_control()
    p = argparse.ArgumentParser(description="Cadence Coach backend")
    p.add_argument("--participant", type=int, default=int(control.get("participant_id", 1)),
                   help="Participant id (integer >= 1)")
    p.add_argument("--mode", choices=["live", "replay"], default=control.get("mode", "live"))
    p.add_argument("--url", default=control.get("url", cfg.DEFAULT_PHYPHOX_URL), help="Phyphox base URL")
    p.add_argument("--csv", default=cfg.SIM_DATA_FILE, help="Replay CSV with a t_ms column")
    p.add_argument("--log-csv", default=cfg.CSV_LOG_PATH)
    p.add_argument("--db", default=cfg.DB_PATH)
    p.add_argument("--no-audio", action="store_true")
    p.add_argument("--log-level", default="INFO", type=str.upper,
                   choices=["DEBUG", "INFO", "WARNING", "ERROR"])
    p.add_argument("--log-file", default=None, help="Also write the backend log to this file")
    args = p.parse_args(argv)
    if args.participant < 1:
        p.error("--participant must be >= 1")
    return args


def configure_logging(level: str = "INFO", log_file: Optional[str] = None) -> None:
    """Console logging for the backend, mirrored to a file when asked."""
    handlers: List[logging.Handler] = [logging.StreamHandler()]
    if log_file:
        handlers.append(logging.FileHandler(log_file))
    logging.basicConfig(format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
                        datefmt="%H:%M:%S", handlers=handlers)
    logging.getLogger("cadence_coach").setLevel(level.upper())


def _raise_interrupt(signum, frame) -> None:
    raise KeyboardInterrupt


def main(argv: Optional[list] = None) -> None:
    args = parse_args(argv)
    os.makedirs(cfg.OUT_DIR, exist_ok=True)
    configure_logging(args.log_level, args.log_file)
    print("\n=== CADENCE COACH ===")

    scheduler = Scheduler()
    status = StatusBoard(args.db)
    audio = AudioEngine(scheduler, enable_audio=cfg.ENABLE_AUDIO and not args.no_audio, status=status)

    logs = [CsvActivityLog(args.log_csv)]
    if cfg.ENABLE_SQLITE_LOG:
        logs.append(SQLiteLogger(args.db))

    controller = SessionController(scheduler, audio, logs=logs, status_reporter=status)
    controller.add_observer(lambda ch: print(f"\r[STATE] {ch.previous.value} -> {ch.current.value} "
                                             f"@ {ch.cadence} SPM"))

    if args.mode == "replay":
        print(f"🎬 MODE: REPLAY ({os.path.basename(args.csv)})")
        stream = ReplayStepStream(args.csv, clock=scheduler.now)
    else:
        print(f"📡 MODE: LIVE SENSOR ({args.url})")
        stream = PhyphoxStepStream(args.url, clock=scheduler.now)

    def poll() -> None:
        try:
            steps = stream.fetch_steps()
        except SensorUnavailableError as e:
            controller.sensor_lost(str(e))
            return
        if steps:
            controller.sensor_recovered()
        for ts in steps:
            controller.on_step(ts)

    signal.signal(signal.SIGTERM, _raise_interrupt)
    controller.start(args.participant)
    print("\n🚀 System active. Press Ctrl-C to stop.")
    try:
        scheduler.run_forever(poll, cfg.POLL_INTERVAL)
    except KeyboardInterrupt:
        print("\n[Exit] Shutdown.")
    finally:
        controller.stop()
        audio.close()
        for activity_log in logs:
            activity_log.close()


if __name__ == "__main__":
    main()
