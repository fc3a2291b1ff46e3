"""User-facing warnings and the coverage-capture progress line."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import List

import typer

from .errors import DeniedWarning

LOGGER = logging.getLogger(__name__)


@dataclass(slots=True)
class Reporter:
    """Emit warnings on stderr, or escalate them when warnings are denied."""

    deny_warnings: bool = False
    emitted: List[str] = field(default_factory=list)

    def warn(self, message: str) -> None:
        if self.deny_warnings:
            raise DeniedWarning(message)
        self.emitted.append(message)
        LOGGER.debug("warning: %s", message)
        typer.echo(f"Warning: {message}", err=True)

    def note(self, message: str) -> None:
        typer.echo(message, err=True)


class Progress:
    """Single-line ``i/n (p%) message`` display redrawn in place on stderr."""

    def __init__(self, total: int) -> None:
        self.total = total
        self.index = 0
        self._width_total = len(str(total))
        self._width_prev = 0
        self._newline_needed = False
        self.finished = False

    def advance(self, message: str) -> None:
        if self.index >= self.total:
            raise RuntimeError("progress advanced past its total")
        self._draw(message)
        self.index += 1

    def finish(self) -> None:
        if self.finished:
            return
        self._draw("")
        self.newline()
        self.finished = True

    def newline(self) -> None:
        if self._newline_needed:
            typer.echo("", err=True)
        self._newline_needed = False

    def _draw(self, message: str) -> None:
        percent = (self.index * 100) // self.total if self.total else 100
        text = f"{self.index:>{self._width_total}}/{self.total} {f'({percent}%)':>5} {message}"
        padding = " " * max(0, self._width_prev - len(text))
        typer.echo(f"{text}{padding}\r", err=True, nl=False)
        self._width_prev = len(text)
        self._newline_needed = True


__all__ = ["Progress", "Reporter"]
