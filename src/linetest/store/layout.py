"""On-disk layout of the coverage store and the read side of it.

The store is a directory tree::

    line-test.db/
        README.txt
        digests.json
        packages/<package>/<crate target>/<test>.lcov

The tree itself is the catalogue of captured tests: nothing else records
which tests exist, so reading the store means walking it.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, List, Set

from ..digests import dump_digests, hash_paths, load_digests
from ..errors import ConfigError, IntegrityError
from ..lcov import parse_lcov
from ..model import PackageCrateMap, PathCoverageMap, PathDigestMap, TestId

LOGGER = logging.getLogger(__name__)

COVERAGE_EXTENSION = ".lcov"
PACKAGES_DIR = "packages"
DIGESTS_FILE = "digests.json"
README_FILE = "README.txt"
README = "This directory and its contents were automatically generated by line-test.\n"

CoverageMap = PackageCrateMap[Dict[TestId, PathCoverageMap]]


def _sorted_entries(path: Path) -> List[Path]:
    return sorted(path.iterdir(), key=lambda entry: entry.name)


class CoverageStore:
    """Handle on a store directory; nothing is read until asked."""

    def __init__(self, root: Path | str) -> None:
        self.root = Path(root)

    @property
    def packages_dir(self) -> Path:
        return self.root / PACKAGES_DIR

    @property
    def digests_path(self) -> Path:
        return self.root / DIGESTS_FILE

    def exists(self) -> bool:
        return self.root.exists()

    def create(self) -> None:
        """Create an empty store with its marker file."""
        self.root.mkdir(parents=True)
        (self.root / README_FILE).write_text(README, encoding="utf-8")
        LOGGER.debug("created store at %s", self.root)

    def crate_dir(self, package: str, krate: str) -> Path:
        return self.packages_dir / package / krate

    def leaf_path(self, package: str, krate: str, test: TestId) -> Path:
        return self.crate_dir(package, krate) / f"{test}{COVERAGE_EXTENSION}"

    # ------------------------------------------------------------------ read
    def read_tests(self) -> PackageCrateMap[List[TestId]]:
        """Reconstitute every captured test from the directory structure."""
        if not self.exists():
            raise ConfigError(f"{self.root} does not exist; run `line-test build` first")
        tests: PackageCrateMap[List[TestId]] = {}
        if not self.packages_dir.exists():
            return tests
        for package_dir in _sorted_entries(self.packages_dir):
            if not package_dir.is_dir():
                raise IntegrityError(f"unexpected file in store: {package_dir}")
            crate_map = tests.setdefault(package_dir.name, {})
            for crate_dir in _sorted_entries(package_dir):
                if not crate_dir.is_dir():
                    raise IntegrityError(f"unexpected file in store: {crate_dir}")
                crate_map[crate_dir.name] = self._read_crate_dir(crate_dir)
        return tests

    @staticmethod
    def _read_crate_dir(crate_dir: Path) -> List[TestId]:
        tests: List[TestId] = []
        for leaf in _sorted_entries(crate_dir):
            if leaf.suffix != COVERAGE_EXTENSION:
                raise IntegrityError(f"unexpected file extension: {leaf}")
            try:
                tests.append(TestId.parse(leaf.stem))
            except ValueError as error:
                raise IntegrityError(f"malformed test file name: {leaf}") from error
        tests.sort()
        return tests

    def read_digests(self) -> PathDigestMap:
        if not self.digests_path.exists():
            raise IntegrityError(
                f"{self.digests_path} is missing; rerun `line-test build --missing-only`"
            )
        return load_digests(self.digests_path)

    def read(self) -> "StoreSnapshot":
        """Load test identities and digests; coverage is parsed lazily."""
        snapshot = StoreSnapshot(store=self, tests=self.read_tests(), digests=self.read_digests())
        LOGGER.debug(
            "read store %s: %d package(s), %d digest(s)",
            self.root,
            len(snapshot.tests),
            len(snapshot.digests),
        )
        return snapshot

    def read_coverage_map(self, tests: PackageCrateMap[List[TestId]]) -> CoverageMap:
        """Parse the artifact of every test in ``tests``."""
        coverage: CoverageMap = {}
        for package, crate_map in sorted(tests.items()):
            package_coverage = coverage.setdefault(package, {})
            for krate, crate_tests in sorted(crate_map.items()):
                crate_coverage = package_coverage.setdefault(krate, {})
                for test in crate_tests:
                    crate_coverage[test] = parse_lcov(self.leaf_path(package, krate, test))
        return coverage

    # ---------------------------------------------------------------- digests
    def rebuild_digests(self) -> PathDigestMap:
        """Hash every file referenced by stored coverage and rewrite the side file."""
        coverage = self.read_coverage_map(self.read_tests())
        digests = hash_paths(covered_paths(coverage))
        dump_digests(digests, self.digests_path)
        LOGGER.debug("wrote %d digest(s) to %s", len(digests), self.digests_path)
        return digests


def covered_paths(coverage: CoverageMap) -> Set[str]:
    """Return every source path mentioned by any coverage record."""
    return {
        path
        for crate_map in coverage.values()
        for test_map in crate_map.values()
        for record in test_map.values()
        for path in record
    }


@dataclass(slots=True)
class StoreSnapshot:
    """Tests and digests read from a store at one point in time."""

    store: CoverageStore
    tests: PackageCrateMap[List[TestId]]
    digests: PathDigestMap

    def coverage_map(self) -> CoverageMap:
        return self.store.read_coverage_map(self.tests)


__all__ = [
    "COVERAGE_EXTENSION",
    "CoverageMap",
    "CoverageStore",
    "DIGESTS_FILE",
    "PACKAGES_DIR",
    "README",
    "README_FILE",
    "StoreSnapshot",
    "covered_paths",
]
