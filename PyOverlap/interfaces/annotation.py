"""Annotation data model and lookup protocols.

Defines the interval type, annotation instances as returned by an
annotation lookup, the named-interval identity used to track seeds
across replicates, and the protocols through which the engine reads
annotation classes and writes derived ones.
"""
from __future__ import annotations

from collections import defaultdict
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Mapping, NamedTuple, Protocol, Sequence, Tuple

from PyOverlap.core.constants import NO_CHANNEL, tp2sec


class Interval(NamedTuple):
    """Half-open time interval [start, stop) in integer time points.

    Zero-duration intervals (start == stop) are valid instants.
    Ordering is by start, then stop.
    """
    start: int
    stop: int

    @property
    def duration(self) -> int:
        return self.stop - self.start

    @property
    def mid(self) -> int:
        if self.stop == self.start:
            return self.start
        return self.start + (self.stop - self.start) // 2

    def overlaps(self, other: Tuple[int, int]) -> bool:
        """Check overlap, treating coincident starts as overlapping.

        The coincident-start rule lets a zero-duration instant overlap an
        interval starting at the same time point.
        """
        return (self.start < other[1] and self.stop > other[0]) or self.start == other[0]

    def shift(self, offset: int) -> Interval:
        return Interval(self.start + offset, self.stop + offset)

    def as_string(self, prec: int = 2) -> str:
        return "{:.{p}f}->{:.{p}f}".format(tp2sec(self.start), tp2sec(self.stop), p=prec)


@dataclass(frozen=True)
class AnnotationInstance:
    """One labeled interval of an annotation class.

    Attributes:
        interval: Interval in absolute time points
        channel: Channel label, ``"."`` when not channel-specific
        instance_id: Free-form instance identifier
        meta: Free-form per-instance metadata
    """
    interval: Interval
    channel: str = NO_CHANNEL
    instance_id: str = "."
    meta: Mapping[str, object] = field(default_factory=dict)


class NamedInterval(NamedTuple):
    """Identity of a registered interval: (segment offset, interval, class id).

    Ordered by interval then class id within a segment, which is the order
    pile-up grouping walks seed intervals in.
    """
    offset: int
    interval: Interval
    name: str

    def sort_key(self) -> Tuple[Interval, str]:
        return (self.interval, self.name)


class AnnotationSource(Protocol):
    """Lookup of annotation classes by name."""

    def fetch_intervals(self, name: str) -> Sequence[AnnotationInstance]:
        """Return the instances of a class, empty (not an error) when unknown."""
        ...


class AnnotationTarget(Protocol):
    """Receiver of derived annotation classes."""

    def add_annotation(self, name: str, interval: Interval, channel: str = NO_CHANNEL) -> None:
        ...


class AnnotationTable:
    """In-memory annotation store implementing both lookup protocols."""

    def __init__(self) -> None:
        self._classes: Dict[str, List[AnnotationInstance]] = defaultdict(list)

    def add(self, name: str, start: int, stop: int, channel: str = NO_CHANNEL,
            instance_id: str = ".", meta: Mapping[str, object] = None) -> None:
        """Add an instance given start/stop in time points."""
        if stop < start:
            raise ValueError("interval stop precedes start: {} < {}".format(stop, start))
        self._classes[name].append(
            AnnotationInstance(Interval(start, stop), channel, instance_id, dict(meta or {}))
        )

    def add_annotation(self, name: str, interval: Interval, channel: str = NO_CHANNEL) -> None:
        self.add(name, interval.start, interval.stop, channel)

    def extend(self, name: str, instances: Iterable[AnnotationInstance]) -> None:
        self._classes[name].extend(instances)

    def fetch_intervals(self, name: str) -> List[AnnotationInstance]:
        return sorted(self._classes.get(name, ()), key=lambda x: (x.interval, x.channel))

    def names(self) -> Tuple[str, ...]:
        return tuple(sorted(k for k, v in self._classes.items() if v))

    def __contains__(self, name: object) -> bool:
        return bool(self._classes.get(name))  # type: ignore

    def __len__(self) -> int:
        return sum(len(v) for v in self._classes.values())
