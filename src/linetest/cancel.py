"""Cooperative cancellation driven by SIGINT.

The interrupt handler only raises a flag.  Long-running loops poll the flag
between external commands so no test process is ever abandoned mid-run.
"""

from __future__ import annotations

import logging
import signal
import threading
from contextlib import contextmanager
from typing import Any, Iterator

from .errors import CancellationError

LOGGER = logging.getLogger(__name__)


class CancellationToken:
    """Process-wide flag set by an interrupt and polled at safe points."""

    def __init__(self) -> None:
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    def check(self) -> None:
        """Raise :class:`CancellationError` when an interrupt was observed."""
        if self._event.is_set():
            raise CancellationError("ctrl-c detected")

    @contextmanager
    def interrupt_handler(self) -> Iterator["CancellationToken"]:
        """Route SIGINT to :meth:`cancel` for the duration of the block."""
        if threading.current_thread() is not threading.main_thread():
            yield self
            return

        def _handler(signum: int, frame: Any) -> None:
            LOGGER.debug("received signal %s; cancelling at the next safe point", signum)
            self.cancel()

        previous = signal.signal(signal.SIGINT, _handler)
        try:
            yield self
        finally:
            signal.signal(signal.SIGINT, previous)


CANCELLATION = CancellationToken()

__all__ = ["CANCELLATION", "CancellationToken"]
