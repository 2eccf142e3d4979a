import os
import json
import logging
import subprocess
from os import path
from logging.handlers import TimedRotatingFileHandler

from batterrier.errors import OperationError, WriteError

LOG_FORMAT = "%(asctime)s - %(levelname)s - %(message)s"


# File Operations
def read_file(path):
    with open(path, "r", encoding="utf-8") as file:
        return file.read().strip()


def getAbsPath(relPath):
    basepath = path.dirname(__file__)
    return path.abspath(path.join(basepath, relPath))


# Configuration
def read_config(config_file=None):
    """
    Load the bundled defaults and overlay the user's config file on top.

    An explicitly given config_file must exist; otherwise the XDG location is
    used only when present.
    """
    with open(getAbsPath("config.json"), "r") as file:
        config = json.load(file)

    if config_file is None:
        config_home = os.environ.get("XDG_CONFIG_HOME") or path.expanduser("~/.config")
        candidate = path.join(config_home, "batterrier", "config.json")
        if path.exists(candidate):
            config_file = candidate

    if config_file is not None:
        with open(config_file, "r") as file:
            overrides = json.load(file)
        if not isinstance(overrides, dict):
            raise ValueError(f"{config_file}: expected a JSON object")
        config.update({key: overrides[key] for key in overrides if key in config})

    config["log_dir"] = path.expanduser(config["log_dir"])
    return config


# Command Execution
class CommandRunner:
    """Runs external commands, prefixing privileged ones with the elevation helper."""

    def __init__(self, elevate_command=("sudo",), systemctl="systemctl"):
        self.elevate_command = list(elevate_command)
        self.systemctl_command = systemctl

    def _prefix(self):
        # Already root: no elevation helper needed
        if os.geteuid() == 0:
            return []
        return list(self.elevate_command)

    def execute(self, args, input=None, error=OperationError):
        command = " ".join(args)
        logging.info(f"Executing command: {command}")
        try:
            result = subprocess.run(
                args,
                input=input,
                text=True,
                stdout=subprocess.DEVNULL,
                stderr=subprocess.PIPE,
            )
        except OSError as e:
            logging.error(f"Command could not be started: {command}: {e}")
            raise error(f"Failed to run '{command}': {e}", command=command) from e
        if result.returncode != 0:
            stderr = (result.stderr or "").strip()
            logging.error(
                f"Command failed with status {result.returncode}: {stderr}"
            )
            message = f"'{command}' exited with status {result.returncode}"
            if stderr:
                message += f": {stderr}"
            raise error(message, command=command, returncode=result.returncode)

    def write(self, target, contents):
        """Equivalent to ``echo contents | sudo tee target > /dev/null``."""
        self.execute(
            self._prefix() + ["tee", str(target)], input=contents, error=WriteError
        )

    def remove(self, target):
        self.execute(self._prefix() + ["rm", "-f", str(target)], error=WriteError)

    def systemctl(self, *args):
        self.execute(self._prefix() + [self.systemctl_command, *args])


# Logging Configuration
def configure_logging(log_dir, log_name="batterrier", verbose=False):
    logger = logging.getLogger()
    logger.setLevel(logging.INFO)

    for handler in list(logger.handlers):
        if getattr(handler, "_batterrier", False):
            logger.removeHandler(handler)
            handler.close()

    formatter = logging.Formatter(LOG_FORMAT)

    # Console handler
    console_handler = logging.StreamHandler()
    console_handler.setLevel(logging.INFO if verbose else logging.WARNING)
    console_handler.setFormatter(formatter)
    # Records marked file_only are already reported to the user by the CLI
    console_handler.addFilter(lambda record: not getattr(record, "file_only", False))
    console_handler._batterrier = True
    logger.addHandler(console_handler)

    # File handler
    try:
        os.makedirs(log_dir, exist_ok=True)
        file_handler = TimedRotatingFileHandler(
            filename=os.path.join(log_dir, f"{log_name}.log"),
            when="midnight",
            interval=1,
            backupCount=1,
        )
    except OSError as e:
        logging.warning(f"File logging disabled, cannot use {log_dir}: {e}")
        return
    file_handler.setFormatter(formatter)
    file_handler._batterrier = True
    logger.addHandler(file_handler)
