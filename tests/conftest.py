from __future__ import annotations

import sys
import textwrap
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Dict, List, Optional, Set

import pytest

ROOT = Path(__file__).resolve().parents[1]
SRC = ROOT / "src"

if str(SRC) not in sys.path:
    sys.path.insert(0, str(SRC))

from linetest.backend import CommandResult  # noqa: E402
from linetest.model import TestId  # noqa: E402

# package -> crate target -> test name -> source path -> executed lines
Suites = Dict[str, Dict[str, Dict[str, Dict[str, Set[int]]]]]


@dataclass
class FakeBackend:
    """In-process stand-in for cargo that writes LCOV artifacts directly."""

    suites: Suites
    failing: Set[str] = field(default_factory=set)
    before_run: Optional[Callable[[str, str, TestId], None]] = None
    runs: List[tuple[str, str, str, bool]] = field(default_factory=list)
    cleaned: int = 0

    def package_crates(self) -> Dict[str, Dict[str, None]]:
        return {package: {krate: None for krate in crates} for package, crates in self.suites.items()}

    def list_tests(self, package: str, krate: str) -> List[TestId]:
        return [TestId.parse(name) for name in self.suites[package][krate]]

    def test_command(self, package: str, krate: str, test: TestId, coverage_path: Optional[Path]) -> List[str]:
        command = ["fake-test", package, krate, str(test)]
        if coverage_path is not None:
            command.extend(["--lcov", str(coverage_path)])
        return command

    def run_test(
        self,
        package: str,
        krate: str,
        test: TestId,
        coverage_path: Optional[Path],
        *,
        capture: bool = True,
    ) -> CommandResult:
        if self.before_run is not None:
            self.before_run(package, krate, test)
        self.runs.append((package, krate, str(test), coverage_path is not None))
        if coverage_path is not None:
            write_lcov(coverage_path, self.suites[package][krate][str(test)])
        exit_code = 101 if str(test) in self.failing else 0
        return CommandResult(
            command=tuple(self.test_command(package, krate, test, coverage_path)),
            exit_code=exit_code,
            stdout="",
            stderr="test failed" if exit_code else "",
        )

    def clean_coverage(self) -> None:
        self.cleaned += 1


def write_lcov(path: Path, coverage: Dict[str, Set[int]]) -> None:
    """Write an LCOV artifact with absolute source paths, as llvm-cov does."""
    base = Path.cwd().resolve()
    records: List[str] = ["TN:"]
    for source, lines in sorted(coverage.items()):
        records.append(f"SF:{base / source}")
        records.append("FN:1,fake_fn")
        for line in sorted(lines):
            records.append(f"DA:{line},1")
        # Instrumented but never executed.
        records.append("DA:999,0")
        records.append(f"LF:{len(lines) + 1}")
        records.append(f"LH:{len(lines)}")
        records.append("end_of_record")
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text("\n".join(records) + "\n", encoding="utf-8")


def snapshot_tree(root: Path) -> Dict[str, bytes]:
    """Return every file below ``root`` keyed by relative path."""
    return {
        path.relative_to(root).as_posix(): path.read_bytes()
        for path in sorted(root.rglob("*"))
        if path.is_file()
    }


@pytest.fixture()
def workspace(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Chdir into a tiny crate layout with two source files."""

    root = tmp_path / "workspace"
    (root / "src").mkdir(parents=True)
    (root / "src" / "a.rs").write_text(
        textwrap.dedent(
            """
            pub fn alpha() -> u32 {
                1
            }
            """
        ).lstrip(),
        encoding="utf-8",
    )
    (root / "src" / "b.rs").write_text(
        textwrap.dedent(
            """
            pub fn beta() -> u32 {
                2
            }
            """
        ).lstrip(),
        encoding="utf-8",
    )
    monkeypatch.chdir(root)
    return root


@pytest.fixture()
def suites() -> Suites:
    return {
        "demo": {
            "lib": {
                "tests::t1": {"src/a.rs": {5, 6, 7}},
                "tests::t2": {"src/a.rs": {10, 11}},
            },
            "integration": {
                "uses_beta": {"src/b.rs": {1, 2}},
                "does_nothing": {},
            },
        }
    }


@pytest.fixture()
def fake_backend(suites: Suites) -> FakeBackend:
    return FakeBackend(suites=suites)


@pytest.fixture()
def backend_factory() -> Callable[..., FakeBackend]:
    return FakeBackend


@pytest.fixture()
def lcov_writer() -> Callable[[Path, Dict[str, Set[int]]], None]:
    return write_lcov


@pytest.fixture()
def tree_snapshot() -> Callable[[Path], Dict[str, bytes]]:
    return snapshot_tree
