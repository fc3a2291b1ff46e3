from __future__ import annotations

from pathlib import Path

import pytest

from linetest.cancel import CancellationToken
from linetest.config import LineTestConfig
from linetest.digests import hash_path_contents
from linetest.errors import ConfigError, IntegrityError
from linetest.model import TestId
from linetest.reporting import Reporter
from linetest.store import CoverageStore, build_store
from linetest.store.layout import README, README_FILE


def _build(store: CoverageStore, backend, **kwargs):
    return build_store(
        store,
        backend=backend,
        config=kwargs.pop("config", LineTestConfig()),
        reporter=kwargs.pop("reporter", Reporter()),
        token=kwargs.pop("token", CancellationToken()),
        **kwargs,
    )


def test_build_writes_one_artifact_per_test(workspace: Path, fake_backend) -> None:
    store = CoverageStore("line-test.db")

    summary = _build(store, fake_backend)

    assert summary.attempted == 4
    assert summary.failed == 0
    assert (workspace / "line-test.db" / README_FILE).read_text(encoding="utf-8") == README
    leaves = sorted(
        path.relative_to(store.packages_dir).as_posix()
        for path in store.packages_dir.rglob("*.lcov")
    )
    assert leaves == [
        "demo/integration/does_nothing.lcov",
        "demo/integration/uses_beta.lcov",
        "demo/lib/tests::t1.lcov",
        "demo/lib/tests::t2.lcov",
    ]
    assert fake_backend.cleaned == 4
    assert all(coverage for *_, coverage in fake_backend.runs)


def test_read_reconstitutes_tests_and_digests(workspace: Path, fake_backend) -> None:
    store = CoverageStore("line-test.db")
    _build(store, fake_backend)

    snapshot = store.read()

    assert snapshot.tests == {
        "demo": {
            "integration": [TestId(("does_nothing",)), TestId(("uses_beta",))],
            "lib": [TestId(("tests", "t1")), TestId(("tests", "t2"))],
        }
    }
    assert snapshot.digests == {
        "src/a.rs": hash_path_contents("src/a.rs"),
        "src/b.rs": hash_path_contents("src/b.rs"),
    }
    coverage = snapshot.coverage_map()
    assert coverage["demo"]["lib"][TestId(("tests", "t1"))] == {"src/a.rs": {5, 6, 7}}
    assert coverage["demo"]["integration"][TestId(("does_nothing",))] == {}


def test_failing_test_is_warned_and_still_recorded(workspace: Path, suites, backend_factory) -> None:
    backend = backend_factory(suites=suites, failing={"tests::t2"})
    reporter = Reporter()
    store = CoverageStore("line-test.db")

    summary = _build(store, backend, reporter=reporter)

    assert summary.failed == 1
    assert any("fake-test demo lib tests::t2" in message for message in reporter.emitted)
    assert store.leaf_path("demo", "lib", TestId.parse("tests::t2")).exists()


def test_missing_only_runs_only_tests_without_artifacts(workspace: Path, fake_backend, suites, backend_factory) -> None:
    store = CoverageStore("line-test.db")
    _build(store, fake_backend)
    store.leaf_path("demo", "lib", TestId.parse("tests::t2")).unlink()
    store.digests_path.unlink()

    backend = backend_factory(suites=suites)
    summary = _build(store, backend, missing_only=True)

    assert summary.attempted == 1
    assert backend.runs == [("demo", "lib", "tests::t2", True)]
    assert store.digests_path.exists()
    assert len(store.read().digests) == 2


def test_missing_only_requires_existing_store(workspace: Path, fake_backend) -> None:
    with pytest.raises(ConfigError, match="does not exist"):
        _build(CoverageStore("line-test.db"), fake_backend, missing_only=True)


def test_read_requires_existing_store(workspace: Path) -> None:
    with pytest.raises(ConfigError):
        CoverageStore("line-test.db").read()


def test_read_requires_digest_file(workspace: Path, fake_backend) -> None:
    store = CoverageStore("line-test.db")
    _build(store, fake_backend)
    store.digests_path.unlink()

    with pytest.raises(IntegrityError, match="--missing-only"):
        store.read()


@pytest.mark.parametrize(
    "stray",
    ["packages/demo/lib/notes.txt", "packages/demo/stray.lcov", "packages/demo/lib/a::::b.lcov"],
)
def test_read_rejects_unexpected_entries(workspace: Path, fake_backend, stray: str) -> None:
    store = CoverageStore("line-test.db")
    _build(store, fake_backend)
    (store.root / stray).write_text("", encoding="utf-8")

    with pytest.raises(IntegrityError):
        store.read_tests()


def test_show_commands_prints_each_test_command(workspace: Path, fake_backend, capsys) -> None:
    store = CoverageStore("line-test.db")

    _build(store, fake_backend, config=LineTestConfig(show_commands=True))

    out = capsys.readouterr().out
    assert "fake-test demo lib tests::t1 --lcov" in out
    assert len(fake_backend.runs) == 4
