class FormDataError(Exception):
    """Base error for the form data service."""


class ParseError(FormDataError):
    """A backing file exists but cannot be read as a record table."""

    def __init__(self, path, reason: str):
        super().__init__(f"{path}: {reason}")
        self.path = path
        self.reason = reason


class StoreWriteError(FormDataError):
    """The backing file could not be written; the pending record is dropped."""


class InvalidGroupError(FormDataError):
    """A form group name is not a safe file slug."""
