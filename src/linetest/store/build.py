"""Populate the coverage store by running every test under instrumentation."""

from __future__ import annotations

import logging
from contextlib import nullcontext
from typing import List

from ..backend import TestBackend
from ..cancel import CANCELLATION, CancellationToken
from ..config import LineTestConfig
from ..errors import ConfigError
from ..model import PackageCrateMap, TestId
from ..reporting import Reporter
from ..runner import RunSummary, run_tests
from ..tools.vcs import GitError, is_ignored
from .guard import RebuildGuard
from .layout import CoverageStore

LOGGER = logging.getLogger(__name__)


def collect_tests(
    backend: TestBackend,
    *,
    token: CancellationToken | None = None,
) -> PackageCrateMap[List[TestId]]:
    """Ask the backend for every package, crate target and test."""
    token = token or CANCELLATION
    tests: PackageCrateMap[List[TestId]] = {}
    for package, crates in sorted(backend.package_crates().items()):
        token.check()
        crate_map = tests.setdefault(package, {})
        for krate in sorted(crates):
            token.check()
            crate_map[krate] = backend.list_tests(package, krate)
    return tests


def remove_captured_tests(
    store: CoverageStore,
    tests: PackageCrateMap[List[TestId]],
) -> PackageCrateMap[List[TestId]]:
    """Drop tests whose coverage artifact already exists."""
    return {
        package: {
            krate: [test for test in crate_tests if not store.leaf_path(package, krate, test).exists()]
            for krate, crate_tests in crate_map.items()
        }
        for package, crate_map in tests.items()
    }


def warn_if_store_not_ignored(store: CoverageStore, reporter: Reporter) -> None:
    try:
        ignored = is_ignored(store.root)
    except GitError as error:
        LOGGER.debug("skipping git ignore check: %s", error)
        return
    if not ignored:
        reporter.warn(
            f"{store.root} is not ignored by git, which may cause unnecessary recompilations"
        )


def build_store(
    store: CoverageStore,
    *,
    backend: TestBackend,
    config: LineTestConfig,
    reporter: Reporter,
    missing_only: bool = False,
    token: CancellationToken | None = None,
) -> RunSummary:
    """Capture coverage for every test, or only for tests lacking an artifact.

    A full rebuild of an existing store is wrapped in a :class:`RebuildGuard`
    so an error or an interrupt puts the previous store back.
    """

    token = token or CANCELLATION
    warn_if_store_not_ignored(store, reporter)

    if store.exists():
        guard = nullcontext() if missing_only else RebuildGuard(store.root, token=token)
        if not missing_only:
            reporter.note(f"saving existing {store.root}; pressing ctrl-c will restore it")
    elif missing_only:
        raise ConfigError(f"{store.root} does not exist")
    else:
        guard = nullcontext()

    with guard as active:
        if not store.exists():
            store.create()

        tests = collect_tests(backend, token=token)
        if missing_only:
            tests = remove_captured_tests(store, tests)

        summary = run_tests(
            tests,
            coverage=True,
            store=store,
            backend=backend,
            config=config,
            reporter=reporter,
            token=token,
        )

        store.rebuild_digests()

        # A dry run restores the previous store instead of committing.
        if isinstance(active, RebuildGuard) and not config.no_run:
            active.disarm()

    return summary


__all__ = ["build_store", "collect_tests", "remove_captured_tests", "warn_if_store_not_ignored"]
