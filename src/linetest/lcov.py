"""Parser for the LCOV artifacts written by ``cargo llvm-cov --lcov``.

Only three record kinds matter here: ``SF:`` opens a per-file section,
``DA:<line>,<count>[,<checksum>]`` reports a line hit, and ``end_of_record``
closes the section.  Everything else (function and branch records, summary
counters, test names) is ignored.
"""

from __future__ import annotations

from pathlib import Path
from typing import Set, TextIO

from .errors import IntegrityError, ParseError, PathError
from .model import PathCoverageMap

SOURCE_FILE = "SF:"
LINE_DATA = "DA:"
END_OF_RECORD = "end_of_record"


def relative_source_path(raw: str, cwd: Path) -> str:
    """Express an ``SF`` path relative to ``cwd`` using forward slashes."""
    path = Path(raw)
    if not path.is_absolute():
        return path.as_posix()
    try:
        return path.relative_to(cwd).as_posix()
    except ValueError as error:
        raise ParseError(f"source file is outside {cwd}: {raw}") from error


def _parse_line_data(payload: str, location: str) -> tuple[int, int]:
    fields = payload.split(",")
    if len(fields) < 2:
        raise ParseError(f"{location}: malformed DA record: {payload}")
    try:
        line = int(fields[0])
        count = int(fields[1])
    except ValueError as error:
        raise ParseError(f"{location}: malformed DA record: {payload}") from error
    if line < 0 or count < 0:
        raise ParseError(f"{location}: negative value in DA record: {payload}")
    return line, count


def _parse_records(handle: TextIO, path: Path, base: Path) -> PathCoverageMap:
    coverage: PathCoverageMap = {}
    source_file: str | None = None
    lines: Set[int] = set()

    for number, raw_line in enumerate(handle, start=1):
        record = raw_line.strip()
        location = f"{path}:{number}"
        if record.startswith(SOURCE_FILE):
            if source_file is not None:
                raise IntegrityError(f"{location}: source file already given: {source_file}")
            source_file = relative_source_path(record[len(SOURCE_FILE) :], base)
            if source_file in coverage:
                raise IntegrityError(f"{location}: duplicate section for {source_file}")
        elif record.startswith(LINE_DATA):
            if source_file is None:
                raise IntegrityError(f"{location}: line data outside a source file section")
            line, count = _parse_line_data(record[len(LINE_DATA) :], location)
            if count != 0:
                lines.add(line)
        elif record == END_OF_RECORD:
            if source_file is None:
                raise IntegrityError(f"{location}: source file not given")
            coverage[source_file] = lines
            source_file = None
            lines = set()

    if source_file is not None:
        raise IntegrityError(f"{path}: unterminated section for {source_file}")
    return coverage


def parse_lcov(path: Path, *, cwd: Path | None = None) -> PathCoverageMap:
    """Parse ``path`` into a mapping of source file to executed line numbers.

    Unreadable artifacts raise :class:`PathError`; undecodable ones raise
    :class:`ParseError`.
    """
    base = (cwd or Path.cwd()).resolve()
    try:
        with path.open("r", encoding="utf-8") as handle:
            return _parse_records(handle, path, base)
    except UnicodeDecodeError as error:
        raise ParseError(f"{path}: coverage artifact is not valid UTF-8: {error}") from error
    except OSError as error:
        raise PathError(f"cannot read coverage artifact {path}: {error.strerror or error}") from error


__all__ = ["END_OF_RECORD", "LINE_DATA", "SOURCE_FILE", "parse_lcov", "relative_source_path"]
