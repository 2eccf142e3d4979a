class BatterrierError(Exception):
    pass


class NotFoundError(BatterrierError):
    """No supported battery directory exists on this host."""


class ReadError(BatterrierError):
    pass


class ParseError(BatterrierError, ValueError):
    pass


class OperationError(BatterrierError):
    """An external command exited non-zero or could not be started."""

    def __init__(self, message, command=None, returncode=None):
        super().__init__(message)
        self.command = command
        self.returncode = returncode


class WriteError(OperationError):
    """A privileged write or removal failed (e.g. elevation declined)."""
