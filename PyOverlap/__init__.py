"""PyOverlap package initialization with version and common utilities.

Provides package constants, version information, and common utilities
for PyOverlap entry points.

The module provides:
- VERSION: Package version string
- logging_version(): Version logging utility
- entrypoint(): Decorator for main entry point exception handling
"""
import logging
import sys
import traceback
from functools import wraps
from typing import Any, Callable, TypeVar

from .core.exceptions import OverlapError

VERSION = "1.0.0"

logger = logging.getLogger(__name__)

R = TypeVar("R")


def logging_version(logger: Any) -> None:
    """Log PyOverlap and Python version information.

    Args:
        logger: Logger instance to use for version output
    """
    logger.info("PyOverlap version {} with Python{}.{}.{}".format(
                *[VERSION] + list(sys.version_info[:3])))
    for line in sys.version.split('\n'):
        logger.debug(line)


def entrypoint(logger: Any) -> Callable[[Callable[..., R]], Callable[..., R]]:
    """Decorator for entry point exception handling.

    Provides consistent exception handling for PyOverlap entry points.
    Fatal analysis errors (bad configuration, impossible shuffle geometry,
    broken invariants) are logged and turned into ``SystemExit(1)``;
    KeyboardInterrupt is handled gracefully.

    Args:
        logger: Logger instance for status messages

    Returns:
        Decorator function that wraps entry point functions

    Example:
        @entrypoint(logger)
        def main():
            # Main application logic
            pass
    """
    def _entrypoint_wrapper_base(main_func: Callable[..., R]) -> Callable[..., R]:
        @wraps(main_func)
        def _inner(*args: Any, **kwargs: Any) -> R:
            try:
                result = main_func(*args, **kwargs)
                logger.info("PyOverlap finished.")
                return result
            except OverlapError as e:
                logger.critical(str(e))
                if 0 < logger.level <= logging.DEBUG:
                    traceback.print_exc()
                raise SystemExit(1)
            except KeyboardInterrupt:
                sys.stderr.write("\r\033[K")
                sys.stderr.flush()
                logger.info("Got KeyboardInterrupt. bye")
                if 0 < logger.level <= logging.DEBUG:
                    traceback.print_exc()
                raise SystemExit(130)
        return _inner
    return _entrypoint_wrapper_base
