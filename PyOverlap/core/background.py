"""Background segments and breakpoints.

Builds the contiguous analysis segments within which annotations are
placed and shuffled, and the ordered breakpoints that no registered or
permuted interval may cross.
"""
from __future__ import annotations

import logging
from bisect import bisect_right
from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional, Tuple

from PyOverlap.interfaces.annotation import Interval
from PyOverlap.core.constants import tp2sec
from PyOverlap.core.exceptions import ConfigurationError
from PyOverlap.core.intervals import flatten, excise, split_at, total_duration

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SegmentMap:
    """Contiguous analysis segments and their breakpoints.

    Attributes:
        segments: Segment start offset -> duration, in offset order
        breakpoints: Sorted unique segment start/stop offsets
        implicit: True when no background was given and a single segment
            from 0 to the last annotation end is used
    """
    segments: Dict[int, int]
    breakpoints: Tuple[int, ...]
    implicit: bool = False

    @classmethod
    def from_regions(cls, regions: Iterable[Interval], implicit: bool = False) -> SegmentMap:
        regions = sorted(regions)
        segments = {r.start: r.duration for r in regions}
        breakpoints = sorted({p for r in regions for p in (r.start, r.stop)})
        return cls(segments, tuple(breakpoints), implicit)

    @property
    def offsets(self) -> List[int]:
        return sorted(self.segments)

    @property
    def total_duration(self) -> int:
        return sum(self.segments.values())

    def regions(self) -> List[Interval]:
        return [Interval(o, o + d) for o, d in sorted(self.segments.items())]

    def duration(self, offset: int) -> int:
        return self.segments[offset]

    def locate(self, interval: Interval) -> Optional[int]:
        """Find the segment wholly containing ``interval``.

        Returns:
            Start offset of the owning segment, or None when the interval
            spans a breakpoint, falls in a gap, or lies outside all segments.
            A zero-duration point lying exactly on a segment start (other
            than 0) is rejected as spanning that breakpoint.
        """
        brk = self.breakpoints
        u1 = bisect_right(brk, interval.start)
        # test on stop - 1 so an interval ending on a breakpoint stays inside
        u2 = bisect_right(brk, interval.stop - 1 if interval.stop else 0)

        if u1 != u2:
            return None
        if u1 == 0 or u1 == len(brk):
            return None

        offset = brk[u1 - 1]
        if offset not in self.segments:
            return None
        return offset


def build_segments(backgrounds: Iterable[Interval],
                   exclusions: Iterable[Interval] = (),
                   edge_tp: int = 0,
                   fallback_stop: Optional[int] = None,
                   cuts: Iterable[int] = ()) -> SegmentMap:
    """Build analysis segments from background and exclusion intervals.

    Args:
        backgrounds: All background-class intervals (any order)
        exclusions: All exclusion-class intervals
        edge_tp: Margin trimmed from both edges of each background region
        fallback_stop: End of the implicit single segment used when no
            background intervals are given (latest annotation end)
        cuts: Time points no segment may span (boundaries between
            individuals laid out end to end)

    Returns:
        SegmentMap of the remaining regions

    Raises:
        ConfigurationError: If exclusions remove every region, or no usable
            segment can be formed
    """
    cuts = list(cuts)
    merged = split_at(flatten(backgrounds, join_adjacent=True), cuts)

    if not merged:
        if fallback_stop is None or fallback_stop <= 0:
            raise ConfigurationError("no background intervals, and no annotations to define an implicit segment")
        logger.info("no background intervals ('bg'), will assume a single region from 0 to last annotation end-point")
        return SegmentMap.from_regions(split_at([Interval(0, fallback_stop)], cuts), implicit=True)

    if edge_tp:
        trimmed = []
        for region in merged:
            if region.stop - edge_tp > region.start + edge_tp:
                trimmed.append(Interval(region.start + edge_tp, region.stop - edge_tp))
        merged = trimmed
        logger.info("background intervals reduced by {} seconds at edges".format(tp2sec(edge_tp)))
        if not merged:
            raise ConfigurationError("no valid background intervals left after edge trimming")

    holes = flatten(exclusions, join_adjacent=True)
    if holes:
        logger.info("excising {} unique xbg intervals".format(len(holes)))
        merged = excise(merged, holes)
        if not merged:
            raise ConfigurationError("no valid background intervals left after exclusions")

    segmap = SegmentMap.from_regions(merged)
    logger.info("background intervals reduced to {} contiguous segments, spanning {} seconds".format(
        len(segmap.segments), tp2sec(total_duration(merged))))
    logger.debug("background: # of discontinuities = {}".format(len(segmap.breakpoints)))

    return segmap
