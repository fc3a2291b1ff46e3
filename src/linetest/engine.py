"""Top-level operations behind the ``build``, ``refresh`` and ``run`` commands."""

from __future__ import annotations

import logging
import sys
from dataclasses import dataclass, field
from typing import List, Optional, Sequence, TextIO

from .backend import TestBackend
from .cancel import CANCELLATION, CancellationToken
from .config import LineTestConfig
from .errors import ConfigError
from .model import PackageCrateMap, PathLineMap, TestId, is_empty_test_map, merge_test_maps
from .reporting import Reporter
from .runner import RunSummary, run_tests
from .selector import (
    select_for_path_lines,
    select_for_refresh,
    validate_paths,
    zero_coverage_tests,
)
from .specs import merge_line_maps, parse_line_specifications, read_diff, read_line_specifications
from .store import CoverageStore, build_store

LOGGER = logging.getLogger(__name__)

STDIN_SPEC = "-"


@dataclass(slots=True)
class Outcome:
    """What an operation selected and, when it ran anything, how it went."""

    test_map: PackageCrateMap[List[TestId]] = field(default_factory=dict)
    summary: Optional[RunSummary] = None

    @property
    def nothing_to_do(self) -> bool:
        return is_empty_test_map(self.test_map)


def assemble_line_map(
    lines: Sequence[str],
    *,
    diff: bool = False,
    stdin: Optional[TextIO] = None,
) -> PathLineMap:
    """Combine ``--line`` specifications with a diff or specs read from stdin."""
    stdin_requested = STDIN_SPEC in lines
    if diff and stdin_requested:
        raise ConfigError("--diff cannot be used with `--line -`")

    path_line_map = parse_line_specifications(spec for spec in lines if spec != STDIN_SPEC)
    stream = stdin or sys.stdin
    if diff:
        merge_line_maps(path_line_map, read_diff(stream))
    elif stdin_requested:
        merge_line_maps(path_line_map, read_line_specifications(stream))
    return path_line_map


def build(
    store: CoverageStore,
    *,
    backend: TestBackend,
    config: LineTestConfig,
    reporter: Reporter,
    missing_only: bool = False,
    token: CancellationToken | None = None,
) -> RunSummary:
    return build_store(
        store,
        backend=backend,
        config=config,
        reporter=reporter,
        missing_only=missing_only,
        token=token or CANCELLATION,
    )


def select_and_run(
    store: CoverageStore,
    path_line_map: PathLineMap,
    *,
    backend: TestBackend,
    config: LineTestConfig,
    reporter: Reporter,
    zero_coverage: bool = False,
    token: CancellationToken | None = None,
) -> Outcome:
    """Select the tests exercising ``path_line_map`` and run them."""
    snapshot = store.read()
    validate_paths(path_line_map, snapshot.digests, reporter)

    coverage_map = snapshot.coverage_map()
    test_map = select_for_path_lines(coverage_map, path_line_map, reporter)
    if zero_coverage:
        merge_test_maps(test_map, zero_coverage_tests(coverage_map))

    outcome = Outcome(test_map=test_map)
    if outcome.nothing_to_do:
        reporter.note("Nothing to do")
        return outcome

    outcome.summary = run_tests(
        test_map,
        coverage=False,
        store=store,
        backend=backend,
        config=config,
        reporter=reporter,
        token=token,
    )
    return outcome


def refresh(
    store: CoverageStore,
    *,
    backend: TestBackend,
    config: LineTestConfig,
    reporter: Reporter,
    token: CancellationToken | None = None,
) -> Outcome:
    """Re-capture coverage for tests whose covered files changed on disk."""
    snapshot = store.read()
    test_map = select_for_refresh(snapshot.coverage_map(), snapshot.digests)

    outcome = Outcome(test_map=test_map)
    if outcome.nothing_to_do:
        reporter.note("Nothing to do")
        return outcome

    outcome.summary = run_tests(
        test_map,
        coverage=True,
        store=store,
        backend=backend,
        config=config,
        reporter=reporter,
        token=token,
    )
    if not config.no_run:
        store.rebuild_digests()
    return outcome


__all__ = ["Outcome", "assemble_line_map", "build", "refresh", "select_and_run"]
