"""Disjoint interval container used for requested line numbers.

A :class:`RangeSet` stores half-open ``range`` objects that never overlap and
never touch, so the stored representation is always the minimal cover of
every range ever inserted.  Ranges are kept ordered by their ``stop`` value,
which lets point lookups bisect straight to the only candidate range.

Example:
    >>> lines = RangeSet()
    >>> lines.insert_range(range(5, 8))
    >>> lines.insert_range(range(8, 10))
    >>> list(lines)
    [range(5, 10)]
    >>> lines.remove(7)
    True
    >>> list(lines)
    [range(5, 7), range(8, 10)]
"""

from __future__ import annotations

from bisect import bisect_right, insort
from typing import Iterable, Iterator, List


def _stop(value: range) -> int:
    return value.stop


def _unionable(x: range, y: range) -> bool:
    """Return True when ``x`` and ``y`` overlap or are adjacent."""
    if x.start <= y.start:
        return x.stop >= y.start
    return y.stop >= x.start


class RangeSet:
    """Set of integers stored as disjoint, non-adjacent half-open ranges."""

    __slots__ = ("_ranges",)

    def __init__(self, ranges: Iterable[range] = ()) -> None:
        self._ranges: List[range] = []
        for value in ranges:
            self.insert_range(value)

    def insert_range(self, value: range) -> None:
        """Add every integer in ``value``, merging with touching ranges."""
        if value.step != 1:
            raise ValueError(f"RangeSet only stores contiguous ranges: {value!r}")
        if value.start >= value.stop:
            return
        start, stop = value.start, value.stop
        kept: List[range] = []
        for existing in self._ranges:
            if _unionable(range(start, stop), existing):
                start = min(start, existing.start)
                stop = max(stop, existing.stop)
            else:
                kept.append(existing)
        insort(kept, range(start, stop), key=_stop)
        self._ranges = kept

    def is_empty(self) -> bool:
        return not self._ranges

    def contains(self, value: int) -> bool:
        """Return True when some stored range includes ``value``."""
        return self._find(value) is not None

    def remove(self, value: int) -> bool:
        """Remove ``value``, splitting its range; return whether it was present."""
        index = self._find(value)
        if index is None:
            return False
        found = self._ranges.pop(index)
        if value + 1 < found.stop:
            self._ranges.insert(index, range(value + 1, found.stop))
        if found.start < value:
            self._ranges.insert(index, range(found.start, value))
        return True

    def copy(self) -> "RangeSet":
        clone = RangeSet()
        clone._ranges = list(self._ranges)
        return clone

    def _find(self, value: int) -> int | None:
        # Only the first range ending after ``value`` can contain it.
        index = bisect_right(self._ranges, value, key=_stop)
        if index < len(self._ranges) and self._ranges[index].start <= value:
            return index
        return None

    def __contains__(self, value: object) -> bool:
        return isinstance(value, int) and self.contains(value)

    def __iter__(self) -> Iterator[range]:
        return iter(list(self._ranges))

    def __len__(self) -> int:
        return len(self._ranges)

    def __bool__(self) -> bool:
        return bool(self._ranges)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, RangeSet):
            return NotImplemented
        return self._ranges == other._ranges

    def __repr__(self) -> str:
        inner = ", ".join(f"{item.start}..{item.stop}" for item in self._ranges)
        return f"RangeSet([{inner}])"


__all__ = ["RangeSet"]
