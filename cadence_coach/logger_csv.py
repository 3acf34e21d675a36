"""
Append-only CSV activity log.
The first line is the column header; rows are only ever appended.
"""
import csv
import os

from cadence_coach.errors import PersistenceWriteError
from cadence_coach.records import LOG_COLUMNS, LogRecord


class CsvActivityLog:
    """Writes one row per monitoring tick to a participant CSV file."""

    def __init__(self, csv_path: str) -> None:
        self.csv_path = csv_path
        parent = os.path.dirname(csv_path)
        if parent:
            os.makedirs(parent, exist_ok=True)
        if not os.path.exists(csv_path) or os.path.getsize(csv_path) == 0:
            self._write(LOG_COLUMNS)

    def _write(self, values) -> None:
        try:
            with open(self.csv_path, "a", newline="", encoding="utf-8") as f:
                csv.writer(f).writerow(values)
        except OSError as e:
            raise PersistenceWriteError(self.csv_path, e) from e

    def append(self, record: LogRecord) -> None:
        self._write(record.as_row())

    def close(self) -> None:
        """Nothing is held open between appends."""
