"""File output utilities with error handling.

Key functionality:
- catch_IOError(): Decorator logging and re-raising I/O errors of
  result writers
"""
from functools import wraps
from typing import Any, Callable, TypeVar
import logging


F = TypeVar('F', bound=Callable[..., Any])


def catch_IOError(logger: logging.Logger) -> Callable[[F], F]:
    """Decorator for I/O error handling.

    Wraps a writer so that a failed write is logged with its file name
    and errno before the exception propagates.

    Args:
        logger: Logger instance for error reporting

    Example:
        @catch_IOError(logger)
        def write_file(self, path):
            with open(path, 'w') as f:
                self.write(f)
    """
    def _inner(func: F) -> F:
        @wraps(func)
        def _io_func(*args: Any, **kwargs: Any) -> Any:
            try:
                return func(*args, **kwargs)
            except IOError as e:
                logger.error("Failed to output '{}':\n[Errno {}] {}".format(
                    e.filename, e.errno, e.strerror or '')
                )
                raise
        return _io_func  # type: ignore
    return _inner
