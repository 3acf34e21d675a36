"""
Dedicated SQLite logging module for session analytics.
Mirrors the CSV activity log so the dashboard can read rows while the backend writes.
"""
import os
import sqlite3

from cadence_coach.errors import PersistenceWriteError
from cadence_coach.records import LOG_COLUMNS, LogRecord


class SQLiteLogger:
    """
    Manages the persistent cadence log for live viewing and offline evaluation.
    Utilizes Write-Ahead Logging (WAL) so the dashboard can read concurrently.
    """

    def __init__(self, db_path: str) -> None:
        """
        Initializes the database connection and sets appropriate PRAGMA rules.
        """
        self.db_path = db_path
        parent = os.path.dirname(db_path)
        if parent:
            os.makedirs(parent, exist_ok=True)
        self.con = sqlite3.connect(db_path, check_same_thread=False)
        self.con.execute("PRAGMA journal_mode=WAL;")
        self.con.execute("PRAGMA synchronous=NORMAL;")
        self.con.execute("PRAGMA busy_timeout=2500;")
        self._init()

    def _init(self) -> None:
        """Initializes the schema."""
        self.con.execute("""
        CREATE TABLE IF NOT EXISTS cadence_log (
            participant_id INTEGER,
            session_id TEXT,
            timestamp TEXT,
            elapsed_time_sec INTEGER,
            cadence_spm INTEGER,
            baseline_cadence INTEGER,
            cadence_deviation INTEGER,
            cadence_state TEXT
        )
        """)
        self.con.execute("CREATE INDEX IF NOT EXISTS idx_cadence_session ON cadence_log(session_id)")
        self.con.commit()

    def append(self, record: LogRecord) -> None:
        """Inserts and commits one log row."""
        placeholders = ",".join("?" for _ in LOG_COLUMNS)
        try:
            self.con.execute(
                f"INSERT INTO cadence_log ({', '.join(LOG_COLUMNS)}) VALUES ({placeholders})",
                record.as_row(),
            )
            self.con.commit()
        except sqlite3.Error as e:
            raise PersistenceWriteError(self.db_path, e) from e

    def close(self) -> None:
        """Safely commits data and closes the database connection."""
        try:
            self.con.commit()
        finally:
            self.con.close()
