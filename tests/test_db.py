"""
Unit tests for the SQLite status channel.
"""
from cadence_coach.db import StatusBoard, fetch_last, set_status


def test_fetch_last_empty(tmp_path):
    assert fetch_last(tmp_path / "status.db") == {}


def test_set_status_roundtrip(tmp_path):
    db_path = tmp_path / "status.db"
    set_status("measuring", db_path=db_path, phase="measuring baseline",
               session_id="s1", participant_id=4, also_print=False)
    set_status("active", db_path=db_path, phase="active", session_id="s1",
               participant_id=4, also_print=False)
    last = fetch_last(db_path)
    assert last["message"] == "active"
    assert last["phase"] == "active"
    assert last["participant_id"] == 4
    assert last["no_signal"] == 0


def test_status_board_passes_fields(tmp_path, capsys):
    board = StatusBoard(tmp_path / "status.db")
    board("No signal", phase="active", no_signal=True)
    assert "No signal" in capsys.readouterr().out
    last = fetch_last(tmp_path / "status.db")
    assert last["no_signal"] == 1
