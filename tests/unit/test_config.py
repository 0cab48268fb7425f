# pylint: disable=missing-module-docstring,missing-function-docstring

import pytest

from config import AppConfig, AutoRecordConfig
from spec import DEFAULT_CUTSCENE_ONLINE_STATUS_ID, DEFAULT_OBS_ADDRESS, DEFAULT_STOP_RECORD_DELAY_S


def test_defaults_record_nothing() -> None:
    cfg = AppConfig.load_from_env({})

    assert cfg.obs_address == DEFAULT_OBS_ADDRESS
    assert cfg.obs_password == ""
    assert cfg.auto_connect is True
    assert cfg.host == "127.0.0.1"
    assert cfg.port == 8000
    assert cfg.auto_record == AutoRecordConfig()
    assert cfg.auto_record.stop_record_on_combat_delay_s == DEFAULT_STOP_RECORD_DELAY_S
    assert cfg.auto_record.cutscene_online_status_id == DEFAULT_CUTSCENE_ONLINE_STATUS_ID


def test_flags_and_numbers_from_env() -> None:
    cfg = AppConfig.load_from_env({
        "OBS_ADDRESS": "ws://10.0.0.2:4455",
        "OBS_PASSWORD": "hunter2",
        "AUTO_CONNECT": "false",
        "HOST": "0.0.0.0",
        "PORT": "9000",
        "START_RECORD_ON_COMBAT": "1",
        "STOP_RECORD_ON_COMBAT": "yes",
        "STOP_RECORD_ON_COMBAT_DELAY_S": "12",
        "DONT_STOP_IN_CUTSCENE": "TRUE",
        "CUTSCENE_ONLINE_STATUS_ID": "16",
        "TRIGGER_REPLAY_BUFFER_ON_WIPE": "on",
        "RECORD_DIRECTORY": "D:\\Recordings",
    })

    assert cfg.obs_address == "ws://10.0.0.2:4455"
    assert cfg.obs_password == "hunter2"
    assert cfg.auto_connect is False
    assert cfg.host == "0.0.0.0"
    assert cfg.port == 9000

    ar = cfg.auto_record
    assert ar.start_record_on_combat is True
    assert ar.stop_record_on_combat is True
    assert ar.stop_record_on_combat_delay_s == 12
    assert ar.dont_stop_in_cutscene is True
    assert ar.cutscene_online_status_id == 16
    assert ar.trigger_replay_buffer_on_wipe is True
    assert ar.start_record_on_countdown is False
    assert ar.record_directory == "D:\\Recordings"


def test_malformed_number_raises() -> None:
    with pytest.raises(ValueError, match="STOP_RECORD_ON_COMBAT_DELAY_S"):
        AutoRecordConfig.load_from_env({"STOP_RECORD_ON_COMBAT_DELAY_S": "soon"})

    with pytest.raises(ValueError, match="PORT"):
        AppConfig.load_from_env({"PORT": "http"})


def test_blank_number_uses_default() -> None:
    cfg = AutoRecordConfig.load_from_env({"STOP_RECORD_ON_COMBAT_DELAY_S": "  "})

    assert cfg.stop_record_on_combat_delay_s == DEFAULT_STOP_RECORD_DELAY_S
