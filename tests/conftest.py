import os
import json
import logging

import pytest

from batterrier.batteryLimiter import BatteryLimiter, locate_battery


class FakeRunner:
    """Performs privileged operations directly and records systemctl calls."""

    def __init__(self):
        self.writes = []
        self.removed = []
        self.systemctl_calls = []

    def write(self, target, contents):
        self.writes.append((str(target), contents))
        with open(target, "w") as file:
            file.write(contents)

    def remove(self, target):
        self.removed.append(str(target))
        if os.path.exists(target):
            os.remove(target)

    def systemctl(self, *args):
        self.systemctl_calls.append(args)


@pytest.fixture(autouse=True)
def reset_logging():
    yield
    logger = logging.getLogger()
    for handler in list(logger.handlers):
        if getattr(handler, "_batterrier", False):
            logger.removeHandler(handler)
            handler.close()


@pytest.fixture
def power_supply(tmp_path):
    root = tmp_path / "power_supply"
    battery = root / "BAT0"
    battery.mkdir(parents=True)
    (battery / "charge_control_end_threshold").write_text("80\n")
    return root


@pytest.fixture
def service_path(tmp_path):
    unit_dir = tmp_path / "systemd"
    unit_dir.mkdir()
    return unit_dir / "battery-charge-threshold.service"


@pytest.fixture
def runner():
    return FakeRunner()


@pytest.fixture
def limiter(power_supply, service_path, runner):
    battery = locate_battery(str(power_supply))
    return BatteryLimiter(battery, runner, service_path=str(service_path))


@pytest.fixture
def config_file(tmp_path, power_supply, service_path):
    path = tmp_path / "config.json"
    path.write_text(
        json.dumps(
            {
                "power_supply_dir": str(power_supply),
                "service_path": str(service_path),
                "log_dir": str(tmp_path / "logs"),
            }
        )
    )
    return path
