"""Run tests by the lines they exercise."""

from .errors import (
    CancellationError,
    ConfigError,
    IntegrityError,
    LineTestError,
    ParseError,
    PathError,
    ProcessError,
)
from .model import TestId
from .range_set import RangeSet

__version__ = "0.1.0"

__all__ = [
    "CancellationError",
    "ConfigError",
    "IntegrityError",
    "LineTestError",
    "ParseError",
    "PathError",
    "ProcessError",
    "RangeSet",
    "TestId",
    "__version__",
]
