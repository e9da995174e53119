"""Person spans for multi-individual analyses.

Several individuals are analysed jointly by laying their annotations out
end to end on one timeline, separated by a spacer.  ``PersonIndex``
records the span each individual occupies so that event permutation
never moves an event from one individual to another.
"""
from __future__ import annotations

import logging
from bisect import bisect_right
from typing import Iterable, List, NamedTuple, Optional, Sequence, Tuple

from PyOverlap.interfaces.annotation import AnnotationInstance, AnnotationSource, AnnotationTable, Interval
from PyOverlap.core.background import SegmentMap
from PyOverlap.core.constants import INDIVIDUAL_SPACER_SEC, sec2tp, tp2sec
from PyOverlap.core.exceptions import ConfigurationError

logger = logging.getLogger(__name__)


class Individual(NamedTuple):
    """One individual's annotations.

    Attributes:
        name: Individual identifier
        source: Annotation lookup for this individual
        duration: Recording duration in time points; when None the latest
            annotation end across the requested classes is used
    """
    name: str
    source: AnnotationSource
    duration: Optional[int] = None


class PersonIndex:
    """Closed time spans ``[start, stop]`` of each person on the shared timeline."""

    def __init__(self, spans: Sequence[Interval], names: Optional[Sequence[str]] = None) -> None:
        self.spans = list(spans)
        self.names = list(names) if names is not None else [str(i) for i in range(len(self.spans))]
        self._starts = [s.start for s in self.spans]

    @classmethod
    def single(cls, segments: SegmentMap) -> PersonIndex:
        """One person spanning every segment."""
        regions = segments.regions()
        return cls([Interval(regions[0].start, regions[-1].stop)])

    def __len__(self) -> int:
        return len(self.spans)

    def person_of(self, tp: int) -> Optional[int]:
        """Index of the person whose span contains ``tp``.

        A point lying on the boundary of two touching spans belongs to the
        later person.
        """
        idx = bisect_right(self._starts, tp) - 1
        while idx >= 0:
            span = self.spans[idx]
            if span.start <= tp <= span.stop:
                return idx
            if span.stop < tp:
                break
            idx -= 1
        return None

    def boundaries(self) -> List[int]:
        """Sorted start and stop points of every span."""
        return sorted({p for s in self.spans for p in (s.start, s.stop)})

    def segments_of(self, person: int, segments: SegmentMap) -> List[int]:
        """Offsets of the segments owned by a person.

        A segment belongs to the person its start falls in, so a segment
        starting on the boundary of two touching spans is the later one's.
        """
        return [off for off in segments.offsets if self.person_of(off) == person]


def _duration(source: AnnotationSource, classes: Iterable[str]) -> int:
    last = 0
    for name in classes:
        for inst in source.fetch_intervals(name):
            last = max(last, inst.interval.stop)
    return last


def concatenate_individuals(individuals: Sequence[Individual],
                            classes: Iterable[str],
                            spacer_sec: float = INDIVIDUAL_SPACER_SEC) -> Tuple[AnnotationTable, PersonIndex]:
    """Lay out several individuals on one timeline.

    Each individual's instances of ``classes`` are shifted by a running
    offset (previous durations plus a spacer) into one combined table.

    Returns:
        Combined annotation table and the matching person index

    Raises:
        ConfigurationError: If no individuals are given, or the spacer is
            negative
    """
    if not individuals:
        raise ConfigurationError("no individuals given")
    if spacer_sec < 0:
        raise ConfigurationError("invalid negative spacer between individuals")

    classes = list(dict.fromkeys(classes))
    spacer = sec2tp(spacer_sec)
    combined = AnnotationTable()
    spans: List[Interval] = []
    offset = 0

    for indiv in individuals:
        duration = indiv.duration if indiv.duration is not None else _duration(indiv.source, classes)
        for name in classes:
            combined.extend(name, (
                AnnotationInstance(inst.interval.shift(offset), inst.channel, inst.instance_id, inst.meta)
                for inst in indiv.source.fetch_intervals(name)
            ))
        spans.append(Interval(offset, offset + duration))
        logger.debug("individual {} placed at {:.1f} seconds".format(indiv.name, tp2sec(offset)))
        offset += duration + spacer

    logger.info("concatenated {} individuals, spanning {:.1f} seconds".format(
        len(individuals), tp2sec(offset - spacer)))

    return combined, PersonIndex(spans, [i.name for i in individuals])
