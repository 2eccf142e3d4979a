import json
import logging
import subprocess

import pytest

from batterrier import utils
from batterrier.errors import OperationError, WriteError
from batterrier.utils import CommandRunner, configure_logging, read_config


class RecordingRun:
    def __init__(self, returncode=0, stderr=""):
        self.returncode = returncode
        self.stderr = stderr
        self.calls = []

    def __call__(self, args, **kwargs):
        self.calls.append((args, kwargs))
        return subprocess.CompletedProcess(args, self.returncode, None, self.stderr)


@pytest.fixture
def run(monkeypatch):
    recorder = RecordingRun()
    monkeypatch.setattr(utils.subprocess, "run", recorder)
    return recorder


@pytest.fixture
def as_user(monkeypatch):
    monkeypatch.setattr(utils.os, "geteuid", lambda: 1000)


def test_write_pipes_contents_through_tee(run, as_user):
    CommandRunner().write("/sys/class/power_supply/BAT0/charge_control_end_threshold", "60\n")
    args, kwargs = run.calls[0]
    assert args == ["sudo", "tee", "/sys/class/power_supply/BAT0/charge_control_end_threshold"]
    assert kwargs["input"] == "60\n"
    assert kwargs["stdout"] is subprocess.DEVNULL


def test_root_skips_elevation(run, monkeypatch):
    monkeypatch.setattr(utils.os, "geteuid", lambda: 0)
    runner = CommandRunner()
    runner.remove("/etc/systemd/system/x.service")
    runner.systemctl("daemon-reload")
    assert [args for args, _ in run.calls] == [
        ["rm", "-f", "/etc/systemd/system/x.service"],
        ["systemctl", "daemon-reload"],
    ]


def test_custom_elevation_command(run, as_user):
    CommandRunner(["doas"]).systemctl("enable", "x.service")
    assert run.calls[0][0] == ["doas", "systemctl", "enable", "x.service"]


def test_failed_write_raises_write_error(run, as_user):
    run.returncode = 1
    run.stderr = "sudo: a password is required\n"
    with pytest.raises(WriteError, match="password is required") as excinfo:
        CommandRunner().write("/tmp/x", "1")
    assert excinfo.value.returncode == 1
    assert excinfo.value.command == "sudo tee /tmp/x"


def test_failed_systemctl_raises_operation_error(run, as_user):
    run.returncode = 4
    with pytest.raises(OperationError) as excinfo:
        CommandRunner().systemctl("restart", "x.service")
    assert not isinstance(excinfo.value, WriteError)
    assert excinfo.value.returncode == 4


def test_missing_executable(monkeypatch, as_user):
    def run(args, **kwargs):
        raise FileNotFoundError(2, "No such file or directory", args[0])

    monkeypatch.setattr(utils.subprocess, "run", run)
    with pytest.raises(OperationError, match="Failed to run"):
        CommandRunner(["no-such-helper"]).systemctl("daemon-reload")


class TestReadConfig:
    def test_defaults(self, tmp_path, monkeypatch):
        monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path))
        config = read_config()
        assert config["power_supply_dir"] == "/sys/class/power_supply"
        assert config["service_path"] == "/etc/systemd/system/battery-charge-threshold.service"
        assert config["elevate_command"] == ["sudo"]
        assert "~" not in config["log_dir"]

    def test_user_config_overrides(self, tmp_path, monkeypatch):
        monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path))
        (tmp_path / "batterrier").mkdir()
        (tmp_path / "batterrier" / "config.json").write_text(
            json.dumps({"elevate_command": ["doas"], "unknown": 1})
        )
        config = read_config()
        assert config["elevate_command"] == ["doas"]
        assert "unknown" not in config

    def test_explicit_file_must_exist(self, tmp_path):
        with pytest.raises(OSError):
            read_config(str(tmp_path / "missing.json"))

    def test_malformed(self, tmp_path):
        path = tmp_path / "config.json"
        path.write_text("[1, 2]")
        with pytest.raises(ValueError):
            read_config(str(path))


def test_configure_logging_does_not_duplicate_handlers(tmp_path):
    configure_logging(str(tmp_path / "logs"))
    configure_logging(str(tmp_path / "logs"), verbose=True)

    ours = [h for h in logging.getLogger().handlers if getattr(h, "_batterrier", False)]
    assert len(ours) == 2
    logging.info("hello")
    for handler in ours:
        handler.flush()
    assert "hello" in (tmp_path / "logs" / "batterrier.log").read_text()
