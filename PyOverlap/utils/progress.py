"""Terminal progress display for the replicate loop.

Key components:
- ProgressBase: Base class with global enable/disable control
- ProgressBar: Single-line bar with a replicate counter

The progress system is globally disabled when stderr is not a terminal,
or explicitly via ``ProgressBase.global_switch``.
"""
from __future__ import annotations

import sys
from abc import ABC, abstractmethod
from typing import Any, Callable, TextIO


class ProgressBase(ABC):
    """Base class for progress indicators.

    Attributes:
        global_switch: Class-level flag to enable/disable all progress indicators
    """

    global_switch: bool = sys.stderr.isatty()

    @classmethod
    def _pass(cls, *args: Any, **kwargs: Any) -> None:
        pass

    @abstractmethod
    def enable_bar(self) -> None:
        pass

    @abstractmethod
    def disable_bar(self) -> None:
        pass


class ProgressBar(ProgressBase):
    """Single-line progress bar rendered as ``name [###   ] i/n``.

    The line is only redrawn when the filled width changes or the last
    step is reached, so a loop over many cheap replicates does not flood
    the terminal.

    Attributes:
        width: Number of cells in the bar
        output: Output stream for progress display (default: stderr)
    """
    clean: Callable[[], None]
    update: Callable[[int], None]

    FILL = "#"
    EMPTY = " "

    def __init__(self, output: TextIO = sys.stderr, width: int = 40) -> None:
        self.output = output
        self.width = width
        self.name = ""
        self.total = 0
        self._filled = -1
        if self.global_switch:
            self.enable_bar()
        else:
            self.disable_bar()

    def enable_bar(self) -> None:
        if self.global_switch:
            self.clean = self._clean
            self.update = self._update

    def disable_bar(self) -> None:
        self.clean = self.update = self._pass

    def set(self, name: str, total: int) -> None:
        """Start a new loop of ``total`` steps."""
        self.name = name
        self.total = max(total, 1)
        self._filled = -1

    def render(self, done: int) -> str:
        filled = min(self.width * done // self.total, self.width)
        return "\r{} [{}{}] {}/{}".format(
            self.name, self.FILL * filled, self.EMPTY * (self.width - filled), done, self.total)

    def _update(self, done: int) -> None:
        filled = min(self.width * done // self.total, self.width)
        if filled == self._filled and done < self.total:
            return
        self._filled = filled
        self.output.write(self.render(done))
        self.output.flush()

    def _clean(self) -> None:
        self.output.write("\r\033[K")
        self.output.flush()
