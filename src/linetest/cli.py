"""Command line entry point: ``line-test build|refresh|run``."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional

import typer

from . import engine
from .cancel import CANCELLATION
from .config import LineTestConfig, load_config
from .errors import LineTestError
from .reporting import Reporter
from .store import CoverageStore
from .tools.cargo import CargoBackend

APP_HELP = "Run tests by the lines they exercise."

SPEC_HELP = """\
If any SPEC is '-', line specifications are read from standard input. Every
other SPEC has the form PATH:LINES[,LINES...] where LINES is N or N-M, for
example src/main.rs:95-97,99.
"""

app = typer.Typer(help=APP_HELP, no_args_is_help=True)


@dataclass(slots=True)
class CliState:
    """Options collected by the top-level callback."""

    config: LineTestConfig


def _fail(error: LineTestError) -> typer.Exit:
    typer.echo(f"Error: {error}", err=True)
    return typer.Exit(code=1)


def _context(
    ctx: typer.Context,
    test_args: Optional[List[str]],
) -> tuple[LineTestConfig, CoverageStore, CargoBackend, Reporter]:
    """Resolve the settings, store, backend and reporter for one command."""
    state: CliState = ctx.obj
    config = state.config
    if test_args:
        config = config.merged(test_args=[*config.test_args, *test_args])
    backend = CargoBackend(config.cargo, extra_args=config.test_args)
    return config, CoverageStore(config.store), backend, Reporter(deny_warnings=config.deny_warnings)


@app.callback()
def main(
    ctx: typer.Context,
    config: Optional[Path] = typer.Option(
        None,
        "--config",
        "-c",
        help="Path to a line-test.yaml configuration file.",
    ),
    store: Optional[Path] = typer.Option(
        None,
        "--store",
        help="Coverage store directory (default: line-test.db).",
    ),
    deny_warnings: bool = typer.Option(
        False,
        "--deny-warnings",
        help="Treat warnings as errors.",
    ),
    show_commands: bool = typer.Option(
        False,
        "--show-commands",
        help="Show commands that would or will be executed.",
    ),
    no_run: bool = typer.Option(
        False,
        "--no-run",
        help="Do not run tests; implies --show-commands.",
    ),
    verbose: bool = typer.Option(
        False,
        "--verbose",
        help="Show command output when computing coverage.",
    ),
    log_level: str = typer.Option(
        "WARNING",
        "--log-level",
        help="Logging level for diagnostic messages.",
    ),
) -> None:
    """Run tests by the lines they exercise."""
    level = logging.getLevelName(log_level.upper())
    if not isinstance(level, int):
        raise typer.BadParameter(f"Unknown log level: {log_level}", param_hint="--log-level")
    logging.basicConfig(level=level, format="%(levelname)s %(name)s: %(message)s")
    try:
        settings = load_config(config).merged(
            store=store,
            deny_warnings=deny_warnings or None,
            show_commands=show_commands or None,
            no_run=no_run or None,
            verbose=verbose or None,
        )
    except LineTestError as error:
        raise _fail(error) from error
    ctx.obj = CliState(config=settings)


@app.command()
def build(
    ctx: typer.Context,
    missing_only: bool = typer.Option(
        False,
        "--missing-only",
        help="Only capture coverage for tests that have none yet.",
    ),
    test_args: Optional[List[str]] = typer.Argument(
        None,
        help="Arguments for `cargo test`/`cargo llvm-cov` (after --).",
    ),
) -> None:
    """Build a new coverage store by running every test under coverage."""
    try:
        config, store, backend, reporter = _context(ctx, test_args)
        engine.build(store, backend=backend, config=config, reporter=reporter, missing_only=missing_only)
    except LineTestError as error:
        raise _fail(error) from error


@app.command()
def refresh(
    ctx: typer.Context,
    test_args: Optional[List[str]] = typer.Argument(
        None,
        help="Arguments for `cargo test`/`cargo llvm-cov` (after --).",
    ),
) -> None:
    """Update coverage for tests whose covered source files changed."""
    try:
        config, store, backend, reporter = _context(ctx, test_args)
        with CANCELLATION.interrupt_handler():
            engine.refresh(store, backend=backend, config=config, reporter=reporter)
    except LineTestError as error:
        raise _fail(error) from error


@app.command(epilog=SPEC_HELP)
def run(
    ctx: typer.Context,
    line: List[str] = typer.Option(
        None,
        "--line",
        "-l",
        metavar="SPEC",
        help="Line(s) to exercise with tests (repeatable).",
    ),
    diff: bool = typer.Option(
        False,
        "--diff",
        help="Generate line specifications from a diff read from standard input.",
    ),
    zero_coverage: bool = typer.Option(
        False,
        "--zero-coverage",
        help="Also select tests that have zero coverage.",
    ),
    test_args: Optional[List[str]] = typer.Argument(
        None,
        help="Arguments for `cargo test` (after --).",
    ),
) -> None:
    """Select the tests that exercise the given lines and run them."""
    try:
        config, store, backend, reporter = _context(ctx, test_args)
        path_line_map = engine.assemble_line_map(list(line or []), diff=diff)
        with CANCELLATION.interrupt_handler():
            engine.select_and_run(
                store,
                path_line_map,
                backend=backend,
                config=config,
                reporter=reporter,
                zero_coverage=zero_coverage,
            )
    except LineTestError as error:
        raise _fail(error) from error


if __name__ == "__main__":
    app()
