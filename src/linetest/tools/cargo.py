"""Cargo integration: workspace metadata, test listing and test execution.

Coverage is captured with ``cargo llvm-cov``.  ``--no-clean`` keeps the
instrumented build between runs, which makes successive runs from one crate
much faster but leaves ``*.profraw`` files behind; those must be purged
before every run or they leak into the next test's report.
"""

from __future__ import annotations

import json
import logging
import subprocess
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence

from ..backend import CommandResult
from ..errors import ParseError, ProcessError
from ..model import LIB_CRATE, PackageCrateMap, TestId, bin_crate, crate_selection

LOGGER = logging.getLogger(__name__)

_LIST_SUFFIX = ": test"


def _crate_key(target: Dict[str, Any]) -> str | None:
    """Map a ``cargo metadata`` target onto its crate target key."""
    kinds = set(target.get("kind") or [])
    name = str(target.get("name") or "")
    if "bin" in kinds:
        return bin_crate(name)
    if kinds & {"lib", "rlib", "dylib", "cdylib", "staticlib", "proc-macro"}:
        return LIB_CRATE
    if "test" in kinds:
        return name
    return None


def parse_metadata(payload: str) -> PackageCrateMap[None]:
    """Extract package and crate target keys from ``cargo metadata`` JSON."""
    try:
        metadata = json.loads(payload)
    except json.JSONDecodeError as error:
        raise ParseError(f"cargo metadata produced invalid JSON: {error}") from error

    package_crates: PackageCrateMap[None] = {}
    for package in metadata.get("packages") or []:
        name = str(package.get("name") or "")
        for target in package.get("targets") or []:
            krate = _crate_key(target)
            if krate is not None:
                package_crates.setdefault(name, {})[krate] = None
    return package_crates


def parse_test_list(stdout: str) -> List[TestId]:
    """Parse ``--list --format=terse`` output into test identities."""
    tests: List[TestId] = []
    for line in stdout.splitlines():
        if not line.endswith(_LIST_SUFFIX):
            continue
        tests.append(TestId.parse(line[: -len(_LIST_SUFFIX)]))
    return tests


class CargoBackend:
    """Drive ``cargo`` and ``cargo llvm-cov`` as subprocesses."""

    def __init__(
        self,
        cargo: str = "cargo",
        *,
        extra_args: Sequence[str] = (),
        cwd: Path | str | None = None,
    ) -> None:
        self.cargo = cargo
        self.extra_args = tuple(extra_args)
        self.cwd = Path(cwd or Path.cwd())

    # -------------------------------------------------------------- commands
    def base_command(self, package: str, krate: str, coverage_path: Optional[Path]) -> List[str]:
        command = [self.cargo, "llvm-cov" if coverage_path is not None else "test"]
        command.extend(["--package", package])
        command.extend(crate_selection(krate))
        if coverage_path is not None:
            command.extend(["--no-clean", "--lcov", "--output-path", str(coverage_path)])
        command.extend(self.extra_args)
        return command

    def test_command(
        self,
        package: str,
        krate: str,
        test: TestId,
        coverage_path: Optional[Path],
    ) -> List[str]:
        return [*self.base_command(package, krate, coverage_path), "--", "--exact", str(test)]

    def _run(self, command: Sequence[str], *, capture: bool = True) -> CommandResult:
        LOGGER.debug("running %s", " ".join(command))
        try:
            process = subprocess.run(  # noqa: S603 - command built from cargo metadata
                list(command),
                cwd=self.cwd,
                capture_output=capture,
                text=True,
                check=False,
            )
        except OSError as error:
            raise ProcessError(f"failed to spawn {command[0]}: {error}") from error
        return CommandResult(
            command=tuple(command),
            exit_code=process.returncode,
            stdout=process.stdout or "",
            stderr=process.stderr or "",
        )

    def _run_checked(self, command: Sequence[str]) -> CommandResult:
        result = self._run(command)
        if not result.ok:
            raise ProcessError(result.failure_message())
        return result

    # ----------------------------------------------------------- collaborators
    def package_crates(self) -> PackageCrateMap[None]:
        result = self._run_checked([self.cargo, "metadata", "--no-deps", "--format-version", "1"])
        return parse_metadata(result.stdout)

    def list_tests(self, package: str, krate: str) -> List[TestId]:
        command = [*self.base_command(package, krate, None), "--", "--list", "--format=terse"]
        result = self._run_checked(command)
        return parse_test_list(result.stdout)

    def run_test(
        self,
        package: str,
        krate: str,
        test: TestId,
        coverage_path: Optional[Path],
        *,
        capture: bool = True,
    ) -> CommandResult:
        return self._run(self.test_command(package, krate, test, coverage_path), capture=capture)

    def clean_coverage(self) -> None:
        self._run_checked([self.cargo, "llvm-cov", "clean", "--profraw-only"])


__all__ = ["CargoBackend", "parse_metadata", "parse_test_list"]
