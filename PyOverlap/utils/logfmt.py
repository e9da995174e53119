"""Coloured log output for analysis runs.

Key components:
- set_rootlogger(): Installs one coloured stream handler on the root logger
- ColorfulFormatter: ANSI colouring by level; messages bold from ERROR up
"""
import logging
import sys
from typing import Dict, Optional, TextIO

LOGGING_FORMAT: str = "[%(asctime)s | %(levelname)s] %(name)10s : %(message)s"

RESET: str = "\033[0m"


def set_rootlogger(colorize: bool, log_level: int, stream: Optional[TextIO] = None) -> logging.Logger:
    """Configure the root logger.

    A handler installed by an earlier call is replaced, so that several
    analyses run from one process do not print every line twice.

    Args:
        colorize: Whether to apply ANSI colors
        log_level: Logging level (e.g., logging.INFO, logging.DEBUG)
        stream: Destination stream (default: stderr)

    Returns:
        Configured root logger instance
    """
    rl = logging.getLogger('')
    for old in list(rl.handlers):
        if isinstance(old.formatter, ColorfulFormatter):
            rl.removeHandler(old)

    h = logging.StreamHandler(stream or sys.stderr)
    h.setFormatter(ColorfulFormatter(fmt=LOGGING_FORMAT, colorize=colorize))

    rl.addHandler(h)
    rl.setLevel(log_level)

    return rl


class ColorfulFormatter(logging.Formatter):
    """ANSI color formatter for log messages.

    The level name is right-aligned to 8 characters and colored by level
    (INFO cyan, WARNING yellow, ERROR red, CRITICAL magenta).

    Attributes:
        DEFAULT_COLOR: ANSI code for levels without an entry
        LOGLEVEL2COLOR: Mapping of log levels to color codes
        BOLD_LEVEL: Messages at or above this level are printed bold
        colorize: Whether to apply color formatting
    """
    DEFAULT_COLOR: int = 39
    LOGLEVEL2COLOR: Dict[int, int] = {
        logging.INFO: 36,
        logging.WARNING: 33,
        logging.ERROR: 31,
        logging.CRITICAL: 35,
    }
    BOLD_LEVEL: int = logging.ERROR

    def __init__(self, fmt: Optional[str] = None, datefmt: Optional[str] = None, colorize: bool = True) -> None:
        super(ColorfulFormatter, self).__init__(fmt=fmt, datefmt=datefmt)
        self.colorize = colorize

    def _paint(self, code: int, text: str) -> str:
        return "\033[{}m{}{}".format(code, text, RESET)

    def formatMessage(self, record: logging.LogRecord) -> str:
        values = dict(record.__dict__)
        levelname = "{:>8}".format(record.levelname)
        if self.colorize:
            levelname = self._paint(self.LOGLEVEL2COLOR.get(record.levelno, self.DEFAULT_COLOR), levelname)
            if record.levelno >= self.BOLD_LEVEL:
                values["message"] = self._paint(1, record.message)
        values["levelname"] = levelname
        return self._fmt % values  # type: ignore
