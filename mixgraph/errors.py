"""Exception hierarchy for mixgraph."""


class MixGraphError(Exception):
    """Base class for every error raised by mixgraph."""


class DescriptorError(MixGraphError):
    """The root project's mix.exs is missing or cannot be read statically."""


class LockFileError(MixGraphError):
    """The lock file exists but is not a literal map of lock entries."""


class TermParseError(MixGraphError):
    """Text could not be read as a literal Elixir or Erlang term."""

    def __init__(self, message: str, offset: int | None = None):
        self.offset = offset
        if offset is not None:
            message = f"{message} (at offset {offset})"
        super().__init__(message)


class TermDecodeError(MixGraphError):
    """Binary data is not a supported External Term Format encoding."""


class ConfigError(MixGraphError):
    """Configuration input is malformed or the output cannot be written."""
