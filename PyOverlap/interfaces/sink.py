"""Hierarchical statistics sink protocol.

Results are emitted as named values under a stack of stratifying
factors: ``level(value, factor)`` opens a stratum, ``value(name, x)``
records a variable in the current strata, and ``unlevel(factor)``
closes it again.
"""
from typing import Protocol, Union

SinkValue = Union[int, float, str]


class StatSink(Protocol):
    """Receiver of stratified result values."""

    def level(self, value: str, factor: str) -> None:
        ...

    def value(self, name: str, x: SinkValue) -> None:
        ...

    def unlevel(self, factor: str) -> None:
        ...
