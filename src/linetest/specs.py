"""Build line-of-interest maps from line specifications and unified diffs.

Line specification syntax::

    <SPEC>:  <PATH> ':' <GROUP>
    <GROUP>: <LINES> (',' <LINES>)*
    <LINES>: <N> ('-' <N>)?

for example ``src/main.rs:95-97,99``.
"""

from __future__ import annotations

from typing import Iterable, TextIO

from unidiff import PatchSet
from unidiff.errors import UnidiffParseError

from .errors import ParseError
from .model import PathLineMap
from .range_set import RangeSet

DEV_NULL = "/dev/null"
SOURCE_PREFIX = "a/"


def merge_line_maps(target: PathLineMap, other: PathLineMap) -> PathLineMap:
    """Union ``other`` into ``target`` path by path and return ``target``."""
    for path, line_set in other.items():
        bucket = target.setdefault(path, RangeSet())
        for lines in line_set:
            bucket.insert_range(lines)
    return target


def _parse_line_number(text: str, spec: str) -> int:
    try:
        value = int(text)
    except ValueError as error:
        raise ParseError(f"invalid line number {text!r} in line specification: {spec}") from error
    if value < 0:
        raise ParseError(f"invalid line number {text!r} in line specification: {spec}")
    return value


def parse_line_specification(spec: str) -> PathLineMap:
    """Parse ``path:N[-M][,N[-M]...]`` into a single-entry line map."""
    path, sep, groups = spec.rpartition(":")
    if not sep:
        raise ParseError(f"line specification does not contain `:`: {spec}")
    if not path:
        raise ParseError(f"line specification has an empty path: {spec}")

    line_set = RangeSet()
    for group in groups.split(","):
        start_text, dash, end_text = group.partition("-")
        start = _parse_line_number(start_text, spec)
        end = _parse_line_number(end_text, spec) if dash else start
        if end < start:
            raise ParseError(f"line range {group!r} is reversed in line specification: {spec}")
        line_set.insert_range(range(start, end + 1))
    return {path: line_set}


def parse_line_specifications(specs: Iterable[str]) -> PathLineMap:
    path_line_map: PathLineMap = {}
    for spec in specs:
        merge_line_maps(path_line_map, parse_line_specification(spec))
    return path_line_map


def read_line_specifications(stream: TextIO) -> PathLineMap:
    """Read one line specification per non-blank line of ``stream``."""
    return parse_line_specifications(line.strip() for line in stream if line.strip())


def diff_line_map(diff_text: str) -> PathLineMap:
    """Collect the original-file lines replaced or deleted by a unified diff.

    Pure insertions touch no existing line, so they contribute nothing.
    """

    try:
        patch_set = PatchSet(diff_text)
    except UnidiffParseError as error:
        raise ParseError(f"malformed diff: {error}") from error

    path_line_map: PathLineMap = {}
    for patched_file in patch_set:
        if patched_file.source_file == DEV_NULL:
            continue
        if not patched_file.source_file.startswith(SOURCE_PREFIX):
            raise ParseError(
                f'source file does not begin with "{SOURCE_PREFIX}": {patched_file.source_file}'
            )
        source_file = patched_file.source_file[len(SOURCE_PREFIX) :]
        line_set = path_line_map.setdefault(source_file, RangeSet())
        for hunk in patched_file:
            if hunk.source_length == 0:
                continue
            line_set.insert_range(range(hunk.source_start, hunk.source_start + hunk.source_length))
    return path_line_map


def read_diff(stream: TextIO) -> PathLineMap:
    return diff_line_map(stream.read())


__all__ = [
    "diff_line_map",
    "merge_line_maps",
    "parse_line_specification",
    "parse_line_specifications",
    "read_diff",
    "read_line_specifications",
]
