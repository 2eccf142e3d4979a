"""Model of the systemd unit that re-applies the charge limit at boot."""

import io
import configparser
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from batterrier.utils import getAbsPath, read_file

TEMPLATE_FILE = "battery-charge-threshold.service"


class _Section(BaseModel):
    # Keys we don't model (After=, Type=, ...) are carried through untouched
    model_config = ConfigDict(extra="allow", populate_by_name=True)


class Unit(_Section):
    description: str = Field(..., alias="Description")


class Service(_Section):
    user: Optional[str] = Field(None, alias="User")
    working_directory: Optional[str] = Field(None, alias="WorkingDirectory")
    exec_start: str = Field(..., alias="ExecStart")
    restart: Optional[str] = Field(None, alias="Restart")
    restart_sec: Optional[int] = Field(None, alias="RestartSec")


class Install(_Section):
    wanted_by: str = Field(..., alias="WantedBy")


def _parser():
    parser = configparser.ConfigParser(interpolation=None, strict=False)
    parser.optionxform = str
    return parser


class LinuxService(BaseModel):
    """Represents a systemd service file."""

    model_config = ConfigDict(populate_by_name=True)

    unit: Unit = Field(..., alias="Unit")
    service: Service = Field(..., alias="Service")
    install: Install = Field(..., alias="Install")

    @classmethod
    def from_string(cls, text):
        """
        Parse unit file text. Raises configparser.Error for malformed INI and
        pydantic.ValidationError when a mandatory section or key is missing.
        """
        parser = _parser()
        parser.read_string(text)
        data = {section: dict(parser.items(section)) for section in parser.sections()}
        return cls.model_validate(data)

    @classmethod
    def from_template(cls):
        return cls.from_string(read_file(getAbsPath(TEMPLATE_FILE)))

    def to_string(self):
        parser = _parser()
        for section, values in self.model_dump(by_alias=True, exclude_none=True).items():
            parser[section] = {key: str(value) for key, value in values.items()}
        buffer = io.StringIO()
        parser.write(buffer, space_around_delimiters=False)
        return buffer.getvalue().rstrip("\n") + "\n"


def exec_start_command(limit, threshold_path):
    return f"/bin/bash -c 'echo {limit} > {threshold_path}'"
