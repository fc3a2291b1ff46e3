"""Interface to the tooling that lists, runs and instruments tests."""

from __future__ import annotations

import shlex
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional, Protocol, Sequence

from .model import PackageCrateMap, TestId


@dataclass(slots=True)
class CommandResult:
    """Outcome of a single external test command."""

    command: tuple[str, ...]
    exit_code: int
    stdout: str = ""
    stderr: str = ""

    @property
    def ok(self) -> bool:
        return self.exit_code == 0

    def describe(self) -> str:
        return shlex.join(self.command)

    def failure_message(self) -> str:
        lines = [f"command failed: {self.describe()}"]
        if self.stdout.strip():
            lines.append(f"stdout:\n{self.stdout.rstrip()}")
        if self.stderr.strip():
            lines.append(f"stderr:\n{self.stderr.rstrip()}")
        return "\n".join(lines)


class TestBackend(Protocol):
    """Collaborator that knows how to enumerate and execute single tests."""

    __test__ = False

    def package_crates(self) -> PackageCrateMap[None]:
        """Return every package and its crate target keys."""
        ...

    def list_tests(self, package: str, krate: str) -> List[TestId]:
        """Return the tests available in ``package``/``krate``."""
        ...

    def test_command(
        self,
        package: str,
        krate: str,
        test: TestId,
        coverage_path: Optional[Path],
    ) -> Sequence[str]:
        """Return the command that runs exactly ``test``."""
        ...

    def run_test(
        self,
        package: str,
        krate: str,
        test: TestId,
        coverage_path: Optional[Path],
        *,
        capture: bool = True,
    ) -> CommandResult:
        """Run exactly ``test``, writing LCOV to ``coverage_path`` when given."""
        ...

    def clean_coverage(self) -> None:
        """Purge instrumentation files left behind by the previous run."""
        ...


__all__ = ["CommandResult", "TestBackend"]
