"""Identities and nested map types shared across the package."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Iterable, List, Set, TypeVar

from .range_set import RangeSet

T = TypeVar("T")

TEST_SEPARATOR = "::"
LIB_CRATE = "lib"
BIN_PREFIX = "bin:"

# package -> crate target key -> payload
PackageCrateMap = Dict[str, Dict[str, T]]
PathLineMap = Dict[str, RangeSet]
PathCoverageMap = Dict[str, Set[int]]
PathDigestMap = Dict[str, bytes]


@dataclass(frozen=True, order=True, slots=True)
class TestId:
    """Fully qualified test name, e.g. ``tests::parse::empty_input``."""

    __test__ = False

    segments: tuple[str, ...]

    def __post_init__(self) -> None:
        if not self.segments or any(not segment for segment in self.segments):
            raise ValueError(f"Test identity has empty segments: {self.segments!r}")

    @classmethod
    def parse(cls, text: str) -> "TestId":
        return cls(tuple(text.split(TEST_SEPARATOR)))

    def __str__(self) -> str:
        return TEST_SEPARATOR.join(self.segments)


def bin_crate(name: str) -> str:
    return f"{BIN_PREFIX}{name}"


def crate_selection(krate: str) -> List[str]:
    """Translate a crate target key into the cargo flags selecting it."""
    if krate == LIB_CRATE:
        return ["--lib"]
    if krate.startswith(BIN_PREFIX):
        return ["--bin", krate[len(BIN_PREFIX) :]]
    return ["--test", krate]


def merge_test_maps(
    target: PackageCrateMap[List[TestId]],
    other: PackageCrateMap[List[TestId]],
) -> None:
    """Append ``other``'s tests into ``target`` without duplicating entries."""
    for package, crate_map in other.items():
        target_crates = target.setdefault(package, {})
        for krate, tests in crate_map.items():
            bucket = target_crates.setdefault(krate, [])
            for test in tests:
                if test not in bucket:
                    bucket.append(test)


def is_empty_test_map(test_map: PackageCrateMap[List[TestId]]) -> bool:
    return all(not tests for crate_map in test_map.values() for tests in crate_map.values())


def count_tests(test_map: PackageCrateMap[Iterable[TestId]]) -> int:
    return sum(len(list(tests)) for crate_map in test_map.values() for tests in crate_map.values())


__all__ = [
    "BIN_PREFIX",
    "LIB_CRATE",
    "PackageCrateMap",
    "PathCoverageMap",
    "PathDigestMap",
    "PathLineMap",
    "TEST_SEPARATOR",
    "TestId",
    "bin_crate",
    "count_tests",
    "crate_selection",
    "merge_test_maps",
    "is_empty_test_map",
]
