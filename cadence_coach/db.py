"""
Status database interface for Cadence Coach.
Utilizes SQLite in Write-Ahead Logging (WAL) mode so the backend loop can post
status messages while the Streamlit dashboard reads them.
"""
import sqlite3
import time
from pathlib import Path
from typing import Any, Dict, Optional

DEFAULT_DB_PATH = Path("outputs/live_session.db")

SCHEMA_SQL = """
CREATE TABLE IF NOT EXISTS status (
  ts REAL NOT NULL,
  phase TEXT,
  session_id TEXT,
  participant_id INTEGER,
  no_signal INTEGER,
  message TEXT
);

CREATE INDEX IF NOT EXISTS idx_status_ts ON status(ts);
"""


def connect(db_path: Path = DEFAULT_DB_PATH) -> sqlite3.Connection:
    """Establishes a concurrent database connection."""
    db_path = Path(db_path)
    db_path.parent.mkdir(parents=True, exist_ok=True)
    con = sqlite3.connect(str(db_path), check_same_thread=False)
    con.execute("PRAGMA journal_mode=WAL;")
    con.execute("PRAGMA synchronous=NORMAL;")
    return con


def init_db(con: sqlite3.Connection) -> None:
    """Initializes the database schema."""
    con.executescript(SCHEMA_SQL)
    con.commit()


def insert_status(con: sqlite3.Connection, row: Dict[str, Any]) -> None:
    """Inserts a single status record into the database."""
    init_db(con)
    data = {
        "ts": float(row.get("ts", time.time())),
        "phase": row.get("phase"),
        "session_id": row.get("session_id"),
        "participant_id": row.get("participant_id"),
        "no_signal": int(bool(row.get("no_signal", False))),
        "message": row.get("message"),
    }
    con.execute(
        """
        INSERT INTO status (ts, phase, session_id, participant_id, no_signal, message)
        VALUES (:ts, :phase, :session_id, :participant_id, :no_signal, :message)
        """,
        data,
    )
    con.commit()


def set_status(
    msg: str,
    *,
    db_path: Path = DEFAULT_DB_PATH,
    phase: Optional[str] = None,
    session_id: Optional[str] = None,
    participant_id: Optional[int] = None,
    no_signal: bool = False,
    also_print: bool = True,
) -> None:
    """Helper method to publish the system status and persist it for the dashboard."""
    if also_print:
        print(msg)

    con = connect(db_path)
    try:
        insert_status(con, {
            "ts": time.time(),
            "phase": phase,
            "session_id": session_id,
            "participant_id": participant_id,
            "no_signal": no_signal,
            "message": msg,
        })
    finally:
        con.close()


def fetch_last(db_path: Path = DEFAULT_DB_PATH) -> Dict[str, Any]:
    """Retrieves the most recent status entry."""
    con = connect(db_path)
    try:
        init_db(con)
        cur = con.execute("SELECT * FROM status ORDER BY ts DESC, rowid DESC LIMIT 1")
        row = cur.fetchone()
        if not row:
            return {}

        cols = [d[0] for d in cur.description]
        return dict(zip(cols, row))
    finally:
        con.close()


class StatusBoard:
    """Binds `set_status` to one database; passed to the session controller as its reporter."""

    def __init__(self, db_path: Path = DEFAULT_DB_PATH, also_print: bool = True) -> None:
        self.db_path = Path(db_path)
        self.also_print = also_print

    def __call__(self, msg: str, **fields: Any) -> None:
        set_status(msg, db_path=self.db_path, also_print=self.also_print, **fields)
