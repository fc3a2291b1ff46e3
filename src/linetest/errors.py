"""Error taxonomy shared by the store, selector and CLI."""

from __future__ import annotations


class LineTestError(RuntimeError):
    """Base class for every fatal condition raised by line-test."""


class ConfigError(LineTestError):
    """Raised for incompatible options or an unusable configuration file."""


class PathError(LineTestError):
    """Raised when a required file is missing or cannot be read."""


class ParseError(LineTestError):
    """Raised for malformed line specifications, diffs, artifacts or digests."""


class IntegrityError(LineTestError):
    """Raised when stored data violates the store's structural invariants."""


class ProcessError(LineTestError):
    """Raised when an external command cannot be spawned or fails."""


class CancellationError(LineTestError):
    """Raised when an interrupt is observed between external commands."""


class DeniedWarning(LineTestError):
    """A warning escalated to an error because warnings are denied."""


__all__ = [
    "CancellationError",
    "ConfigError",
    "DeniedWarning",
    "IntegrityError",
    "LineTestError",
    "ParseError",
    "PathError",
    "ProcessError",
]
