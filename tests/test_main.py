"""
Tests for the backend entry point: argument handling and logging setup.
"""
import json
import logging

import pytest

import main
from cadence_coach import config as cfg


@pytest.fixture
def no_control(tmp_path, monkeypatch):
    monkeypatch.setattr(cfg, "CONTROL_JSON", str(tmp_path / "control.json"))
    return tmp_path / "control.json"


def test_defaults_without_control_file(no_control):
    args = main.parse_args([])
    assert args.participant == 1
    assert args.mode == "live"
    assert args.log_level == "INFO"


def test_control_file_supplies_defaults(no_control):
    no_control.write_text(json.dumps({"participant_id": 4, "mode": "replay"}))
    args = main.parse_args([])
    assert args.participant == 4
    assert args.mode == "replay"


def test_unreadable_control_file_is_ignored(no_control):
    no_control.write_text("{not json")
    assert main.read_control() == {}


def test_participant_must_be_positive(no_control):
    with pytest.raises(SystemExit):
        main.parse_args(["--participant", "0"])


def test_log_level_is_case_insensitive(no_control):
    assert main.parse_args(["--log-level", "debug"]).log_level == "DEBUG"


def test_configure_logging_sets_package_level():
    pkg = logging.getLogger("cadence_coach")
    try:
        main.configure_logging("debug")
        assert pkg.level == logging.DEBUG
        assert logging.getLogger("cadence_coach.session").isEnabledFor(logging.DEBUG)
    finally:
        pkg.setLevel(logging.NOTSET)
