"""Persistent, per-test coverage index."""

from .build import build_store, collect_tests
from .guard import RebuildGuard
from .layout import CoverageMap, CoverageStore, StoreSnapshot, covered_paths

__all__ = [
    "CoverageMap",
    "CoverageStore",
    "RebuildGuard",
    "StoreSnapshot",
    "build_store",
    "collect_tests",
    "covered_paths",
]
