"""Sequential execution of a selected set of tests.

Tests run one external process at a time in package, crate target, test
order.  Coverage capture shares instrumentation state between runs, so
running tests concurrently is not an option.
"""

from __future__ import annotations

import logging
import shlex
import sys
from dataclasses import dataclass
from typing import TYPE_CHECKING, List, Optional

import typer

from .backend import TestBackend
from .cancel import CANCELLATION, CancellationToken
from .config import LineTestConfig
from .model import PackageCrateMap, TestId, count_tests
from .reporting import Progress, Reporter

if TYPE_CHECKING:
    from .store.layout import CoverageStore

LOGGER = logging.getLogger(__name__)


@dataclass(slots=True)
class RunSummary:
    """Counts collected while running a test map."""

    attempted: int = 0
    failed: int = 0


def _width(values: List[str]) -> int:
    return max((len(value) for value in values), default=0)


def run_tests(
    test_map: PackageCrateMap[List[TestId]],
    *,
    coverage: bool,
    store: CoverageStore,
    backend: TestBackend,
    config: LineTestConfig,
    reporter: Reporter,
    token: CancellationToken | None = None,
) -> RunSummary:
    """Run every test in ``test_map``; with ``coverage`` write LCOV leaves."""

    token = token or CANCELLATION
    summary = RunSummary()

    packages = list(test_map)
    crates = [krate for crate_map in test_map.values() for krate in crate_map]
    names = [str(test) for crate_map in test_map.values() for tests in crate_map.values() for test in tests]
    package_width, crate_width, test_width = _width(packages), _width(crates), _width(names)

    progress: Optional[Progress] = None
    if coverage and not config.verbose and sys.stderr.isatty():
        progress = Progress(count_tests(test_map))

    try:
        for package, crate_map in sorted(test_map.items()):
            token.check()
            for krate, tests in sorted(crate_map.items()):
                token.check()
                if not tests:
                    continue
                if coverage:
                    store.crate_dir(package, krate).mkdir(parents=True, exist_ok=True)
                for test in tests:
                    token.check()
                    if progress is not None:
                        progress.advance(
                            f"package: {package:{package_width}}  "
                            f"crate: {krate:{crate_width}}  "
                            f"test: {str(test):{test_width}}"
                        )
                    _run_one(
                        package,
                        krate,
                        test,
                        coverage=coverage,
                        store=store,
                        backend=backend,
                        config=config,
                        reporter=reporter,
                        progress=progress,
                        summary=summary,
                    )
    finally:
        if progress is not None:
            progress.finish()

    return summary


def _run_one(
    package: str,
    krate: str,
    test: TestId,
    *,
    coverage: bool,
    store: CoverageStore,
    backend: TestBackend,
    config: LineTestConfig,
    reporter: Reporter,
    progress: Optional[Progress],
    summary: RunSummary,
) -> None:
    coverage_path = store.leaf_path(package, krate, test) if coverage else None

    if config.show_commands:
        if progress is not None:
            progress.newline()
        typer.echo(shlex.join(backend.test_command(package, krate, test, coverage_path)))

    if config.no_run:
        return

    if coverage:
        backend.clean_coverage()

    summary.attempted += 1
    result = backend.run_test(package, krate, test, coverage_path, capture=not config.verbose)
    LOGGER.debug("%s exited with %d", result.describe(), result.exit_code)
    if result.ok:
        return

    summary.failed += 1
    if progress is not None:
        progress.newline()
    if config.verbose:
        reporter.warn(f"command failed: {result.describe()}")
    else:
        reporter.warn(result.failure_message())


__all__ = ["RunSummary", "run_tests"]
