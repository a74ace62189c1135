"""MetaMode exception hierarchy.

All MetaMode-specific exceptions inherit from MetamodeError. Data problems
found while extracting, compiling or validating annotations are never raised:
they are reported as warnings and issues. Only caller-facing faults live here.
"""


class MetamodeError(Exception):
    """Base exception for all MetaMode errors."""


class ConfigError(MetamodeError):
    """Invalid or missing configuration."""


class ScanError(MetamodeError):
    """A required input root does not exist or is not a directory."""

    def __init__(self, message: str = "", *, path: str = "") -> None:
        super().__init__(message)
        self.path = path


class DatabaseFormatError(MetamodeError):
    """A serialized database could not be read back."""


class UnknownAgentTypeError(MetamodeError):
    """A context request named an agent type with no prompt template."""
