"""Turn lines of interest into the tests that exercise them.

For each requested path, the first test (in package, crate target, test
order) whose coverage touches any requested line of that path is selected,
and the whole path counts as satisfied.  Other tests covering the same path are not selected on its
behalf.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Set

from .digests import hash_path_contents
from .errors import PathError
from .model import PackageCrateMap, PathDigestMap, PathLineMap, TestId
from .range_set import RangeSet
from .reporting import Reporter
from .store.layout import CoverageMap

LOGGER = logging.getLogger(__name__)


@dataclass(slots=True)
class PathsNeedingWarning:
    """Requested paths that cannot take part in selection."""

    nonexistent: List[str] = field(default_factory=list)
    uncovered: List[str] = field(default_factory=list)


def _format_paths(paths: List[str]) -> str:
    return "\n".join(f"    {path}" for path in paths)


def validate_paths(
    path_line_map: PathLineMap,
    digests: PathDigestMap,
    reporter: Reporter,
) -> PathsNeedingWarning:
    """Drop paths with no recorded digest; fail on paths missing from disk."""
    flagged = PathsNeedingWarning()
    for path in list(path_line_map):
        if not Path(path).exists():
            flagged.nonexistent.append(path)
            del path_line_map[path]
        elif path not in digests:
            flagged.uncovered.append(path)
            del path_line_map[path]

    if flagged.nonexistent:
        raise PathError(f"the following paths do not exist:\n{_format_paths(flagged.nonexistent)}")
    if flagged.uncovered:
        reporter.warn(
            f"the following paths are not covered by any test:\n{_format_paths(flagged.uncovered)}"
        )
    return flagged


def _intersects(line_set: RangeSet, covered: Set[int]) -> bool:
    return any(line_set.contains(line) for line in covered)


def select_for_path_lines(
    coverage_map: CoverageMap,
    path_line_map: PathLineMap,
    reporter: Reporter,
) -> PackageCrateMap[List[TestId]]:
    """Select at most one test per requested path and report leftover lines."""
    uncovered: PathLineMap = {path: line_set.copy() for path, line_set in path_line_map.items()}
    satisfied: Set[str] = set()
    test_map: PackageCrateMap[List[TestId]] = {}

    for package, crate_coverage in sorted(coverage_map.items()):
        package_tests = test_map.setdefault(package, {})
        for krate, test_coverage in sorted(crate_coverage.items()):
            selected = package_tests.setdefault(krate, [])
            for test, record in test_coverage.items():
                for path, covered in sorted(record.items()):
                    if path in satisfied:
                        continue
                    line_set = path_line_map.get(path)
                    if line_set is None or not _intersects(line_set, covered):
                        continue
                    LOGGER.debug("selected %s for %s", test, path)
                    satisfied.add(path)
                    uncovered[path] = RangeSet()
                    if test not in selected:
                        selected.append(test)

    warn_about_uncovered_lines(uncovered, reporter)
    return test_map


def format_ranges(path: str, line_set: RangeSet) -> List[str]:
    """Render each stored range as ``path:N`` or ``path:N-M``."""
    rendered: List[str] = []
    for lines in line_set:
        last = lines.stop - 1
        text = str(lines.start) if lines.start == last else f"{lines.start}-{last}"
        rendered.append(f"{path}:{text}")
    return rendered


def warn_about_uncovered_lines(uncovered: PathLineMap, reporter: Reporter) -> None:
    if all(line_set.is_empty() for line_set in uncovered.values()):
        return
    entries = [entry for path in sorted(uncovered) for entry in format_ranges(path, uncovered[path])]
    reporter.warn(
        "the following lines are not covered by any test:\n" + _format_paths(entries)
    )


def zero_coverage_tests(coverage_map: CoverageMap) -> PackageCrateMap[List[TestId]]:
    """Return tests whose coverage records contain no executed line at all."""
    test_map: PackageCrateMap[List[TestId]] = {}
    for package, crate_coverage in sorted(coverage_map.items()):
        package_tests = test_map.setdefault(package, {})
        for krate, test_coverage in sorted(crate_coverage.items()):
            package_tests[krate] = [
                test
                for test, record in test_coverage.items()
                if sum(len(lines) for lines in record.values()) == 0
            ]
    return test_map


def path_contents_changed(path: str, digests: PathDigestMap, cache: Dict[str, bytes | None]) -> bool:
    """Compare the current digest of ``path`` with the stored one.

    A path that no longer exists counts as changed.
    """

    if path not in cache:
        try:
            cache[path] = hash_path_contents(path)
        except FileNotFoundError:
            cache[path] = None
    current = cache[path]
    return current is None or digests.get(path) != current


def select_for_refresh(
    coverage_map: CoverageMap,
    digests: PathDigestMap,
) -> PackageCrateMap[List[TestId]]:
    """Select every test that covers at least one changed file."""
    cache: Dict[str, bytes | None] = {}
    test_map: PackageCrateMap[List[TestId]] = {}
    for package, crate_coverage in sorted(coverage_map.items()):
        package_tests = test_map.setdefault(package, {})
        for krate, test_coverage in sorted(crate_coverage.items()):
            package_tests[krate] = [
                test
                for test, record in test_coverage.items()
                if any(path_contents_changed(path, digests, cache) for path in sorted(record))
            ]
    return test_map


__all__ = [
    "PathsNeedingWarning",
    "format_ranges",
    "path_contents_changed",
    "select_for_path_lines",
    "select_for_refresh",
    "validate_paths",
    "warn_about_uncovered_lines",
    "zero_coverage_tests",
]
