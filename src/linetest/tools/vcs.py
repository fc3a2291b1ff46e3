"""Minimal git helpers used to sanity check the store location."""

from __future__ import annotations

import subprocess
from pathlib import Path
from typing import Sequence


class GitError(RuntimeError):
    """Raised when git cannot be executed."""


def _run_git(args: Sequence[str], *, cwd: Path) -> subprocess.CompletedProcess[str]:
    command = ["git", *args]
    try:
        process = subprocess.run(
            command,
            cwd=cwd,
            capture_output=True,
            text=False,
            check=False,
        )
    except OSError as error:
        raise GitError(f"git {' '.join(args)} could not be started: {error}") from error
    stdout = process.stdout.decode("utf-8", errors="replace") if process.stdout else ""
    stderr = process.stderr.decode("utf-8", errors="replace") if process.stderr else ""
    return subprocess.CompletedProcess(process.args, process.returncode, stdout, stderr)


def is_ignored(path: Path | str, *, cwd: Path | str | None = None) -> bool:
    """Return True when ``git check-ignore`` reports ``path`` as ignored.

    Outside a repository ``git check-ignore`` exits non-zero, which is treated
    the same as "not ignored".
    """

    workdir = Path(cwd or Path.cwd())
    result = _run_git(["check-ignore", "-q", Path(path).as_posix()], cwd=workdir)
    return result.returncode == 0


__all__ = ["GitError", "is_ignored"]
