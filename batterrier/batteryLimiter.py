import os
import re
import logging
import configparser
from dataclasses import dataclass

from pydantic import ValidationError

from batterrier.errors import NotFoundError, ParseError, ReadError
from batterrier.systemdService import LinuxService, exec_start_command
from batterrier.utils import read_file

POWER_SUPPLY_DIR = "/sys/class/power_supply"
SERVICE_FILENAME = "battery-charge-threshold.service"
SERVICE_PATH = f"/etc/systemd/system/{SERVICE_FILENAME}"
THRESHOLD_FILE = "charge_control_end_threshold"
FULL_THRESHOLD = 100

# Vendors name the primary battery differently
BATTERY_NAMES = ("BAT0", "BAT1", "BATT", "BATC")

INFO_FILES = (
    "alarm",
    "capacity",
    "capacity_level",
    "charge_control_end_threshold",
    "cycle_count",
    "energy_full",
    "energy_full_design",
    "energy_now",
    "manufacturer",
    "model_name",
    "power_now",
    "present",
    "serial_number",
    "status",
    "technology",
    "type",
    "voltage_min_design",
    "voltage_now",
)

_PERCENT_RE = re.compile(r"\+?[0-9]+")


class Percent(int):
    """Battery charge limit, an integer in [0, 100]."""

    ERR_MSG = "Percent must be a number between 0 and 100"

    def __new__(cls, value):
        if isinstance(value, bool) or not isinstance(value, int):
            raise ParseError(cls.ERR_MSG)
        if not 0 <= value <= 100:
            raise ParseError(cls.ERR_MSG)
        return super().__new__(cls, value)

    @classmethod
    def parse(cls, text):
        if not _PERCENT_RE.fullmatch(text):
            raise ParseError(cls.ERR_MSG)
        try:
            value = int(text)
        except ValueError:
            # Past the interpreter's integer digit limit
            raise ParseError(cls.ERR_MSG) from None
        return cls(value)

    def __str__(self):
        return str(int(self))

    def __repr__(self):
        return f"Percent({int(self)})"


@dataclass(frozen=True)
class BatteryHandle:
    name: str
    path: str

    @property
    def threshold_path(self):
        return os.path.join(self.path, THRESHOLD_FILE)

    def attribute_path(self, attribute):
        return os.path.join(self.path, attribute)


@dataclass(frozen=True)
class Transition:
    old: Percent
    new: Percent

    @property
    def changed(self):
        return self.old != self.new

    def __str__(self):
        return f"🔋{self.old} -> 🔋{self.new}"


def locate_battery(power_supply_dir=POWER_SUPPLY_DIR):
    """
    Find the battery exposing the charge limit.

    Path to the limit file is `<power_supply_dir>/BAT?/charge_control_end_threshold`
    where `BAT?` is the first of BATTERY_NAMES whose directory exists.
    """
    for name in BATTERY_NAMES:
        battery_path = os.path.join(power_supply_dir, name)
        if os.path.isdir(battery_path):
            logging.info(f"Using battery {name} at {battery_path}")
            return BatteryHandle(name=name, path=battery_path)
    raise NotFoundError(
        f"Battery not found (looked for {', '.join(BATTERY_NAMES)} in {power_supply_dir})"
    )


class BatteryLimiter:
    def __init__(self, battery, runner, service_path=SERVICE_PATH):
        self.battery = battery
        self.runner = runner
        self.service_path = service_path
        self.service_name = os.path.basename(service_path)

    def get_value(self):
        threshold_path = self.battery.threshold_path
        try:
            content = read_file(threshold_path)
        except OSError as e:
            raise ReadError(f"Failed to read from {threshold_path}: {e}") from e
        except UnicodeDecodeError as e:
            raise ParseError(f"Failed to parse battery limit in {threshold_path}: {e}") from e
        try:
            return Percent.parse(content)
        except ParseError as e:
            raise ParseError(f"Failed to parse battery limit {content!r}: {e}") from e

    def set_value(self, limit):
        logging.info(f"Writing {limit} to {self.battery.threshold_path}")
        self.runner.write(self.battery.threshold_path, f"{limit}\n")

    def set(self, limit, persist=False):
        old_limit = self.get_value()
        transition = Transition(old_limit, limit)
        if not transition.changed and not persist:
            logging.info(f"Limit already {limit}, nothing to do")
            return transition

        self.set_value(limit)
        if persist:
            self.install_service(limit)
        return transition

    def build_service(self, limit):
        service = LinuxService.from_template()
        service.service.exec_start = exec_start_command(
            limit, self.battery.threshold_path
        )
        return service

    def install_service(self, limit):
        logging.info(f"Installing {self.service_path} for limit {limit}")
        contents = self.build_service(limit).to_string()
        self.runner.write(self.service_path, contents)
        self.runner.systemctl("enable", self.service_name)
        self.runner.systemctl("daemon-reload")
        self.runner.systemctl("restart", self.service_name)

    def get_persisted(self):
        """Limit embedded in the installed unit, or None if there isn't one."""
        try:
            service = LinuxService.from_string(read_file(self.service_path))
        except (OSError, UnicodeDecodeError, configparser.Error, ValidationError) as e:
            logging.info(f"No usable persisted service at {self.service_path}: {e}")
            return None
        before, after = exec_start_command("\0", self.battery.threshold_path).split("\0")
        pattern = re.escape(before) + r"(\d+)" + re.escape(after)
        match = re.fullmatch(pattern, service.service.exec_start.strip())
        if not match:
            return None
        try:
            return Percent.parse(match.group(1))
        except ParseError:
            return None

    def get(self):
        return self.get_value(), self.get_persisted()

    def clean(self):
        old_limit = self.get_value()
        full = Percent(FULL_THRESHOLD)
        self.set_value(full)

        if os.path.exists(self.service_path):
            logging.info(f"Removing {self.service_path}")
            self.runner.systemctl("disable", self.service_name)
            self.runner.remove(self.service_path)
            self.runner.systemctl("daemon-reload")
        return Transition(old_limit, full)

    def info(self):
        info = []
        for attribute in INFO_FILES:
            try:
                info.append((attribute, read_file(self.battery.attribute_path(attribute))))
            except (OSError, UnicodeDecodeError):
                continue
        pad_size = max((len(attribute) for attribute, _ in info), default=0)
        return "\n".join(f"{attribute:<{pad_size}} {value}" for attribute, value in info)
