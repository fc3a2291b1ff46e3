from __future__ import annotations

from pathlib import Path

import pytest
from typer.testing import CliRunner

from linetest import cli
from linetest.store import build as store_build

runner = CliRunner()


@pytest.fixture()
def cli_backend(workspace: Path, fake_backend, monkeypatch: pytest.MonkeyPatch):
    """Route the CLI to the in-process backend and record how it was built."""

    calls: list[dict] = []

    def factory(cargo: str, *, extra_args=()):
        calls.append({"cargo": cargo, "extra_args": list(extra_args)})
        return fake_backend

    monkeypatch.setattr(cli, "CargoBackend", factory)
    monkeypatch.setattr(store_build, "is_ignored", lambda path: True)
    fake_backend.calls = calls
    return fake_backend


def test_build_then_run_selects_covering_test(cli_backend) -> None:
    result = runner.invoke(cli.app, ["build"])
    assert result.exit_code == 0, result.output
    assert len(cli_backend.runs) == 4

    result = runner.invoke(cli.app, ["run", "--line", "src/a.rs:6"])

    assert result.exit_code == 0, result.output
    assert cli_backend.runs[4:] == [("demo", "lib", "tests::t1", False)]


def test_run_reads_specs_from_stdin(cli_backend) -> None:
    runner.invoke(cli.app, ["build"])

    result = runner.invoke(cli.app, ["run", "-l", "-"], input="src/b.rs:1\n\n")

    assert result.exit_code == 0, result.output
    assert cli_backend.runs[4:] == [("demo", "integration", "uses_beta", False)]


def test_run_without_store_fails(cli_backend) -> None:
    result = runner.invoke(cli.app, ["run", "--line", "src/a.rs:6"])

    assert result.exit_code == 1
    assert "Error:" in result.output
    assert "does not exist" in result.output


def test_diff_with_stdin_specs_is_rejected(cli_backend) -> None:
    runner.invoke(cli.app, ["build"])

    result = runner.invoke(cli.app, ["run", "--diff", "--line", "-"], input="")

    assert result.exit_code == 1
    assert "--diff cannot be used" in result.output


def test_deny_warnings_turns_uncovered_lines_into_errors(cli_backend) -> None:
    runner.invoke(cli.app, ["build"])

    result = runner.invoke(cli.app, ["--deny-warnings", "run", "--line", "src/a.rs:20"])

    assert result.exit_code == 1
    assert "Error: the following lines are not covered by any test" in result.output
    assert "src/a.rs:20" in result.output


def test_uncovered_lines_warn_but_succeed(cli_backend) -> None:
    runner.invoke(cli.app, ["build"])

    result = runner.invoke(cli.app, ["run", "--line", "src/a.rs:20"])

    assert result.exit_code == 0
    assert "Warning: the following lines are not covered by any test" in result.output
    assert "Nothing to do" in result.output


def test_no_run_prints_commands_only(cli_backend) -> None:
    runner.invoke(cli.app, ["build"])

    result = runner.invoke(cli.app, ["--no-run", "run", "--line", "src/a.rs:6"])

    assert result.exit_code == 0, result.output
    assert "fake-test demo lib tests::t1" in result.output
    assert len(cli_backend.runs) == 4


def test_trailing_arguments_reach_the_backend(cli_backend) -> None:
    runner.invoke(cli.app, ["build"])

    result = runner.invoke(cli.app, ["run", "--line", "src/a.rs:6", "--", "--features", "x"])

    assert result.exit_code == 0, result.output
    assert cli_backend.calls[-1]["extra_args"] == ["--features", "x"]


def test_refresh_reports_nothing_to_do(cli_backend) -> None:
    runner.invoke(cli.app, ["build"])

    result = runner.invoke(cli.app, ["refresh"])

    assert result.exit_code == 0, result.output
    assert "Nothing to do" in result.output


def test_build_missing_only_requires_store(cli_backend) -> None:
    result = runner.invoke(cli.app, ["build", "--missing-only"])

    assert result.exit_code == 1
    assert "does not exist" in result.output


def test_config_file_sets_store_location(cli_backend, workspace: Path) -> None:
    (workspace / "line-test.yaml").write_text("store: coverage.db\n", encoding="utf-8")

    result = runner.invoke(cli.app, ["build"])

    assert result.exit_code == 0, result.output
    assert (workspace / "coverage.db" / "digests.json").exists()
    assert not (workspace / "line-test.db").exists()


def test_invalid_config_file_is_reported(cli_backend, workspace: Path) -> None:
    config = workspace / "custom.yaml"
    config.write_text("colour: blue\n", encoding="utf-8")

    result = runner.invoke(cli.app, ["--config", str(config), "build"])

    assert result.exit_code == 1
    assert "Error: Invalid configuration" in result.output


def test_unknown_log_level_is_a_usage_error(cli_backend) -> None:
    result = runner.invoke(cli.app, ["--log-level", "chatty", "build"])

    assert result.exit_code == 2


def test_refresh_with_deleted_covered_file_reports_error(cli_backend, workspace: Path) -> None:
    runner.invoke(cli.app, ["build"])
    (workspace / "src" / "b.rs").unlink()

    result = runner.invoke(cli.app, ["refresh"])

    assert result.exit_code == 1
    assert "Error:" in result.output
    assert "src/b.rs" in result.output
    assert cli_backend.runs[4:] == [("demo", "integration", "uses_beta", True)]
