"""Event permutation: relocate neighbourhoods of events within each person.

Events of a permutation partition (an alignment group, or a single
permutable class) that lie close together are chained into
neighbourhoods.  Each replicate drops every neighbourhood, as one rigid
block, at a uniformly chosen free position among the segments of the
same person, so internal spacing and co-occurrence within a block are
kept while block positions are randomized.
"""
from __future__ import annotations

import logging
from collections import defaultdict
from typing import DefaultDict, Dict, FrozenSet, List, NamedTuple, Sequence, Set, Tuple

import numpy as np

from PyOverlap.interfaces.annotation import Interval
from PyOverlap.core.background import SegmentMap
from PyOverlap.core.exceptions import InternalInvariantError, ShuffleGeometryError
from PyOverlap.core.intervals import excise
from PyOverlap.core.persons import PersonIndex
from PyOverlap.core.registry import EventMap, EventRegistry

logger = logging.getLogger(__name__)


class Member(NamedTuple):
    """One event of a neighbourhood, relative to the neighbourhood anchor."""
    name: str
    start: int
    stop: int


class Neighbourhood(NamedTuple):
    """Rigid block of nearby events moved together.

    Attributes:
        person: Person index
        partition: Partition index
        anchor: Segment-local start of the first event
        offset: Segment the block was observed in
        members: Events relative to the anchor
        span: Block length used for placement (at least one time point)
    """
    person: int
    partition: int
    anchor: int
    offset: int
    members: Tuple[Member, ...]
    span: int


def _label(partition: FrozenSet[str]) -> str:
    return ",".join(sorted(partition))


class EventPermuter:
    """Neighbourhood arena built once from the observed registry.

    Example:
        permuter = EventPermuter(registry, segments, persons, permutable, window_tp)
        events = permuter.permute(rng)
    """

    def __init__(self,
                 registry: EventRegistry,
                 segments: SegmentMap,
                 persons: PersonIndex,
                 permutable: Sequence[str],
                 window_tp: int) -> None:
        self.segments = segments
        self.persons = persons
        self.permutable = frozenset(permutable)
        self.window = window_tp
        self.partitions: List[FrozenSet[str]] = registry.alignment.partitions(self.permutable)

        # events of classes that keep their placement
        self.static: EventMap = {
            off: {name: list(ints) for name, ints in annots.items() if name not in self.permutable}
            for off, annots in registry.events.items()
        }

        # partition index -> (person, anchor) -> neighbourhood
        self.arena: List[Dict[Tuple[int, int], Neighbourhood]] = [
            self._build(registry, part_idx, part) for part_idx, part in enumerate(self.partitions)
        ]

        self.person_segments: Dict[int, List[int]] = {
            person: persons.segments_of(person, segments) for person in range(len(persons))
        }

        for part_idx, part in enumerate(self.partitions):
            logger.info("event permutation: {} neighbourhood(s) for {}".format(
                len(self.arena[part_idx]), _label(part)))

    def _build(self, registry: EventRegistry, part_idx: int,
               partition: FrozenSet[str]) -> Dict[Tuple[int, int], Neighbourhood]:
        arena: Dict[Tuple[int, int], Neighbourhood] = {}

        for offset, annots in registry.events.items():
            grouped: DefaultDict[int, List[Tuple[Interval, str]]] = defaultdict(list)
            for name in partition:
                for i in annots.get(name, ()):
                    person = self.persons.person_of(offset + i.start)
                    if person is None:
                        raise ShuffleGeometryError(
                            name, "event at {} lies outside every person".format(offset + i.start))
                    grouped[person].append((i, name))

            for person, items in grouped.items():
                items.sort()
                chain: List[Tuple[Interval, str]] = [items[0]]
                chain_end = items[0][0].stop
                for i, name in items[1:]:
                    if i.start - chain_end <= self.window:
                        chain.append((i, name))
                        chain_end = max(chain_end, i.stop)
                    else:
                        self._add(arena, person, part_idx, offset, chain, chain_end)
                        chain, chain_end = [(i, name)], i.stop
                self._add(arena, person, part_idx, offset, chain, chain_end)

        return arena

    @staticmethod
    def _add(arena: Dict[Tuple[int, int], Neighbourhood], person: int, part_idx: int, offset: int,
             chain: List[Tuple[Interval, str]], chain_end: int) -> None:
        anchor = chain[0][0].start
        members = tuple(Member(name, i.start - anchor, i.stop - anchor) for i, name in chain)
        arena[(person, offset + anchor)] = Neighbourhood(
            person, part_idx, anchor, offset, members, max(chain_end - anchor, 1))

    def neighbourhoods(self, part_idx: int, person: int) -> List[Neighbourhood]:
        return [nb for (p, _), nb in sorted(self.arena[part_idx].items()) if p == person]

    def placements(self, rng: np.random.Generator) -> List[Tuple[Neighbourhood, int, int]]:
        """Draw a segment and a start for every neighbourhood.

        Returns:
            ``(neighbourhood, segment offset, segment-local start)`` triples

        Raises:
            ShuffleGeometryError: If a neighbourhood fits in no remaining gap
        """
        out: List[Tuple[Neighbourhood, int, int]] = []
        for part_idx, part in enumerate(self.partitions):
            for person in range(len(self.persons)):
                blocks = self.neighbourhoods(part_idx, person)
                if not blocks:
                    continue
                blockers: DefaultDict[int, List[Interval]] = defaultdict(list)
                for k in rng.permutation(len(blocks)):
                    nb = blocks[int(k)]
                    offset, start = self._place(nb, person, blockers, rng, part)
                    blockers[offset].append(Interval(start, start + nb.span))
                    out.append((nb, offset, start))
        return out

    def permute(self, rng: np.random.Generator) -> EventMap:
        """Place every neighbourhood at a random free position."""
        placed: DefaultDict[int, DefaultDict[str, Set[Interval]]] = defaultdict(lambda: defaultdict(set))
        for nb, offset, start in self.placements(rng):
            for m in nb.members:
                placed[offset][m.name].add(Interval(start + m.start, start + m.stop))

        events: EventMap = {off: {name: list(ints) for name, ints in annots.items()}
                            for off, annots in self.static.items()}
        for offset, annots in placed.items():
            seg = events.setdefault(offset, {})
            for name, ints in annots.items():
                seg[name] = sorted(ints)
        return events

    def _place(self, nb: Neighbourhood, person: int, blockers: Dict[int, List[Interval]],
               rng: np.random.Generator, partition: FrozenSet[str]) -> Tuple[int, int]:
        candidates: List[Tuple[int, Interval, int]] = []
        total = 0
        for offset in self.person_segments[person]:
            seg = Interval(0, self.segments.duration(offset))
            for gap in excise([seg], blockers.get(offset, ())):
                n = gap.duration - nb.span + 1
                if n > 0:
                    candidates.append((offset, gap, n))
                    total += n

        if not total:
            raise ShuffleGeometryError(_label(partition), "no gap can hold a neighbourhood of {} events".format(
                len(nb.members)))

        r = int(rng.integers(total))
        for offset, gap, n in candidates:
            if r < n:
                return offset, gap.start + r
            r -= n

        raise InternalInvariantError("placement walk ran past {} candidate starts".format(total))
