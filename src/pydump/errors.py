"""Exception hierarchy for pydump."""


class DumpError(Exception):
    """Base class for every error that aborts a pydump run."""


class ConfigError(DumpError):
    """Invalid configuration file or environment value."""


class SelectionError(DumpError):
    """The requested field selection cannot be resolved."""


class UnknownFieldError(SelectionError):
    """A requested field or group name is not in the domain registry."""

    def __init__(self, name: str, domain: str) -> None:
        super().__init__(f"unknown field or group '{name}' for {domain}")
        self.name = name
        self.domain = domain


class ConflictingFlagsError(SelectionError):
    """Two mutually exclusive flags were given together."""

    def __init__(self, *flags: str) -> None:
        super().__init__(f"conflicting flags: {', '.join(flags)}")
        self.flags = flags


class RequestValidationError(DumpError):
    """The dump request is malformed."""


class MissingSelectFieldError(RequestValidationError):
    """An operation on the select field was requested without --select."""

    def __init__(self, flag: str, domain: str) -> None:
        super().__init__(f"{flag} requires --select for {domain}")
        self.flag = flag
        self.domain = domain


class UnknownSelectFieldError(RequestValidationError):
    """The --select field is not a field of the domain."""

    def __init__(self, name: str, domain: str) -> None:
        super().__init__(f"--select '{name}' is not a field of {domain}")
        self.name = name
        self.domain = domain


class SourceError(DumpError):
    """The sample source failed to produce a time slice."""


class RenderError(DumpError):
    """The output sink could not be opened or written."""
