"""Tests for config file parsing and the typed startup/hot settings."""

import hashlib
import logging
from pathlib import Path

import pytest

from config_loader import (
    CONFIG_CHECK_SECONDS,
    ConfigError,
    LOOP_DELAY,
    SumpConfigLoader,
    get_config_path,
    parse_config,
    parse_config_text,
)

SAMPLE = """\
# sample
LogFile=/tmp/sumpalarm.log
LogLevel=2

SumpDepth = 760
SumpDiameter=510
LowWater=114
HighWater=222

Switch0Level=200
Switch0Pin=14
Switch0Bounce=5
Switch0On=echo on $SARATE >> /tmp/events.log
Switch0Off=

switch12pin=15
SWITCH12ON=echo a=b # not a comment

RateChangeAmt=20
RateChange=echo rate
OverdueThreshold=120
Overdue=echo overdue
"""


def _write(tmp_path: Path, text: str) -> Path:
    path = tmp_path / "sumpalarm.conf"
    path.write_text(text)
    return path


class TestParseText:
    def test_skips_comments_and_blank_lines(self) -> None:
        env = parse_config_text("# c\n\nA = 1\n")
        assert env == {"a": "1"}

    def test_line_without_equals_is_an_error(self) -> None:
        with pytest.raises(ConfigError):
            parse_config_text("SumpDepth 760\n")


class TestLoad:
    def test_startup_settings(self, tmp_path: Path) -> None:
        config = SumpConfigLoader(_write(tmp_path, SAMPLE)).load()
        assert config.geometry.depth == 760
        assert config.geometry.diameter == 510
        assert config.geometry.low_water == 114
        assert config.geometry.high_water == 222
        assert config.pins == {0: 14, 12: 15}
        assert config.log_file == Path("/tmp/sumpalarm.log")
        assert config.loop_delay == 1.0
        assert config.config_check_seconds == CONFIG_CHECK_SECONDS

    def test_hot_settings(self, tmp_path: Path) -> None:
        snapshot = SumpConfigLoader(_write(tmp_path, SAMPLE)).load().snapshot
        switch0 = snapshot.switch(0)
        assert switch0.level == 200
        assert switch0.bounce == 5
        assert switch0.on_action == "echo on $SARATE >> /tmp/events.log"
        assert switch0.off_action is None
        assert snapshot.switch(12).on_action == "echo a=b # not a comment"
        assert snapshot.switch(12).bounce == 5
        assert snapshot.rate_change_pct == 20
        assert snapshot.rate_change_action == "echo rate"
        assert snapshot.overdue_threshold == 120
        assert snapshot.overdue_action == "echo overdue"
        assert snapshot.log_level == 2

    def test_fingerprint_is_sha256_of_contents(self, tmp_path: Path) -> None:
        path = _write(tmp_path, SAMPLE)
        loader = SumpConfigLoader(path)
        expected = hashlib.sha256(path.read_bytes()).hexdigest()
        assert loader.fingerprint() == expected
        assert loader.load().snapshot.fingerprint == expected
        assert loader.load_snapshot().fingerprint == expected

    def test_out_of_range_log_level_defaults_to_everything(self, tmp_path: Path) -> None:
        path = _write(tmp_path, "Switch0Pin=14\nLogLevel=9\n")
        assert SumpConfigLoader(path).load().snapshot.log_level == 3

    def test_bad_number_falls_back_to_default(self, tmp_path: Path) -> None:
        path = _write(tmp_path, "Switch0Pin=14\nSwitch0Bounce=soon\nOverdueThreshold=x\n")
        snapshot = SumpConfigLoader(path).load().snapshot
        assert snapshot.switch(0).bounce == 5
        assert snapshot.overdue_threshold == 0

    def test_unknown_key_is_logged_and_ignored(self, caplog: pytest.LogCaptureFixture) -> None:
        with caplog.at_level(logging.WARNING, logger="config_loader"):
            config = parse_config({"switch0pin": "14", "sumpdeth": "760"})
        assert "sumpdeth" in caplog.text
        assert config.geometry.depth == 0
        assert config.pins == {0: 14}

    @pytest.mark.parametrize("value", ["0", "-5", "0.5"])
    def test_config_check_interval_below_minimum_uses_default(self, value: str) -> None:
        config = parse_config({"switch0pin": "14", "configcheckinterval": value})
        assert config.config_check_seconds == CONFIG_CHECK_SECONDS

    @pytest.mark.parametrize("value", ["0", "-1"])
    def test_loop_delay_below_minimum_uses_default(self, value: str) -> None:
        config = parse_config({"switch0pin": "14", "loopdelay": value})
        assert config.loop_delay == LOOP_DELAY


class TestStartupErrors:
    def test_missing_file(self, tmp_path: Path) -> None:
        with pytest.raises(ConfigError):
            SumpConfigLoader(tmp_path / "absent.conf").load()

    def test_switch0_must_be_bound(self, tmp_path: Path) -> None:
        path = _write(tmp_path, "Switch1Pin=15\nSwitch0Level=200\n")
        with pytest.raises(ConfigError, match="Switch0"):
            SumpConfigLoader(path).load()

    @pytest.mark.parametrize("pin", ["0", "-3", "gpio14", "28", "99"])
    def test_invalid_pin(self, tmp_path: Path, pin: str) -> None:
        path = _write(tmp_path, f"Switch0Pin=14\nSwitch3Pin={pin}\n")
        with pytest.raises(ConfigError, match="Switch3"):
            SumpConfigLoader(path).load()

    def test_shared_pin(self) -> None:
        with pytest.raises(ConfigError, match="Switch1 GPIO pin 14 already used by Switch0"):
            parse_config({"switch0pin": "14", "switch1pin": "14"})


class TestConfigPath:
    def test_default(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.delenv("SUMPALARM_CONF", raising=False)
        assert get_config_path() == Path("/etc/sumpalarm.conf")

    def test_environment_override(self, monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
        monkeypatch.setenv("SUMPALARM_CONF", str(tmp_path / "alt.conf"))
        assert get_config_path() == (tmp_path / "alt.conf").resolve()

    def test_argument_wins(self, monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
        monkeypatch.setenv("SUMPALARM_CONF", str(tmp_path / "alt.conf"))
        assert get_config_path(str(tmp_path / "cli.conf")) == (tmp_path / "cli.conf").resolve()
