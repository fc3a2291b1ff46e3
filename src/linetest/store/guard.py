"""Rename-based backup of the store while it is rebuilt.

A rebuild runs every test under instrumentation and can take a long time.
:class:`RebuildGuard` moves the existing store into a hidden sibling
directory before the rebuild starts.  Unless the guard is disarmed after a
successful rebuild, leaving the ``with`` block deletes whatever was rebuilt
so far and moves the backup back into place.

Example:
    >>> with RebuildGuard(path) as guard:   # doctest: +SKIP
    ...     rebuild(path)
    ...     guard.disarm()
"""

from __future__ import annotations

import logging
import os
import shutil
import tempfile
from contextlib import ExitStack
from pathlib import Path
from types import TracebackType
from typing import Optional, Type

from ..cancel import CANCELLATION, CancellationToken

LOGGER = logging.getLogger(__name__)


class RebuildGuard:
    """Back up ``path`` on enter and restore it on exit unless disarmed."""

    def __init__(self, path: Path | str, *, token: CancellationToken | None = None) -> None:
        self.path = Path(path)
        self.token = token or CANCELLATION
        self.armed = False
        self._canonical: Path | None = None
        self._tempdir: Path | None = None
        self._stack = ExitStack()

    @property
    def backup_path(self) -> Path | None:
        if self._tempdir is None or self._canonical is None:
            return None
        return self._tempdir / self._canonical.name

    def __enter__(self) -> "RebuildGuard":
        canonical = self.path.resolve(strict=True)
        # Same parent directory, so the rename never crosses filesystems.
        tempdir = Path(tempfile.mkdtemp(prefix=".line-test-", dir=canonical.parent))
        try:
            os.rename(canonical, tempdir / canonical.name)
        except OSError:
            shutil.rmtree(tempdir, ignore_errors=True)
            raise
        self._canonical = canonical
        self._tempdir = tempdir
        self.armed = True
        LOGGER.debug("backed up %s to %s", canonical, tempdir)

        self._stack.enter_context(self.token.interrupt_handler())
        return self

    def disarm(self) -> None:
        """Commit the rebuild; the backup is discarded on exit."""
        self.armed = False

    def __exit__(
        self,
        exc_type: Optional[Type[BaseException]],
        exc: Optional[BaseException],
        tb: Optional[TracebackType],
    ) -> None:
        self._stack.close()
        if self._canonical is None or self._tempdir is None:
            return
        if self.armed and not self._restore(self._canonical, self._tempdir):
            LOGGER.warning("Previous store left at %s", self.backup_path)
        else:
            self._discard(self._tempdir)
        self._canonical = None
        self._tempdir = None

    @staticmethod
    def _restore(canonical: Path, tempdir: Path) -> bool:
        # Cleanup failures are logged, not raised.
        LOGGER.debug("restoring %s from %s", canonical, tempdir)
        try:
            if canonical.exists():
                shutil.rmtree(canonical)
        except OSError as error:
            LOGGER.warning("Failed to remove partial store %s: %s", canonical, error)
        try:
            os.rename(tempdir / canonical.name, canonical)
        except OSError as error:
            LOGGER.warning("Failed to restore %s from %s: %s", canonical, tempdir, error)
            return False
        return True

    @staticmethod
    def _discard(tempdir: Path) -> None:
        try:
            shutil.rmtree(tempdir)
        except OSError as error:
            LOGGER.warning("Failed to remove backup directory %s: %s", tempdir, error)


__all__ = ["RebuildGuard"]
