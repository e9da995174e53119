"""Circular shuffle of registered intervals within their segments.

Each permutable class is rotated by a random displacement inside every
segment; intervals pushed past the segment end wrap to its start.
Classes in one alignment group share the displacement drawn for the
first of them in a segment.
"""
from __future__ import annotations

import logging
from typing import Dict, Iterable, List, Optional, Sequence

import numpy as np

from PyOverlap.interfaces.annotation import Interval
from PyOverlap.core.background import SegmentMap
from PyOverlap.core.constants import MAX_SHUFFLE_ATTEMPTS
from PyOverlap.core.exceptions import ShuffleGeometryError
from PyOverlap.core.registry import AlignmentGroups, EventMap

logger = logging.getLogger(__name__)


def straddles(intervals: Iterable[Interval], displacement: int, seg_len: int) -> bool:
    """Check whether any interval would span the segment end after shifting."""
    for i in intervals:
        if i.start + displacement < seg_len < i.stop + displacement:
            return True
    return False


def draw_displacement(intervals: Sequence[Interval],
                      seg_len: int,
                      rng: np.random.Generator,
                      max_shift: Optional[int] = None,
                      max_attempts: int = MAX_SHUFFLE_ATTEMPTS) -> Optional[int]:
    """Draw a displacement that leaves no interval straddling the segment end.

    Args:
        intervals: Intervals that must all remain whole after the shift
        seg_len: Segment duration
        rng: Random generator
        max_shift: Bound on the displacement in either direction; None for
            a uniform draw over the whole segment
        max_attempts: Rejection sampling cap

    Returns:
        Displacement in [0, seg_len), or None when every attempt failed
    """
    if max_shift is None:
        upper = seg_len
    else:
        upper = min(2 * max_shift, seg_len)

    if upper <= 0:
        return 0 if not straddles(intervals, 0, seg_len) else None

    for _ in range(max_attempts):
        p = int(rng.integers(upper))
        if max_shift is not None and p >= max_shift:
            # second half of the range maps to a backwards shift
            p = seg_len - (p - max_shift)
            if p >= seg_len:
                p -= seg_len
        if not straddles(intervals, p, seg_len):
            return p

    return None


def rotate(intervals: Iterable[Interval], displacement: int, seg_len: int) -> List[Interval]:
    """Shift intervals by ``displacement``, wrapping at the segment end."""
    out = []
    for i in intervals:
        start, stop = i.start + displacement, i.stop + displacement
        if start >= seg_len:
            start -= seg_len
            stop -= seg_len
        out.append(Interval(start, stop))
    return sorted(out)


def circular_shuffle(events: EventMap,
                     segments: SegmentMap,
                     alignment: AlignmentGroups,
                     permutable: Sequence[str],
                     rng: np.random.Generator,
                     max_shift: Optional[int] = None) -> EventMap:
    """Return a circularly shuffled copy of ``events``.

    Args:
        events: Segment offset -> class id -> segment-local intervals
        segments: Segment map the events were registered against
        alignment: Alignment groups sharing one displacement per segment
        permutable: Class ids to shuffle (fixed classes already removed)
        rng: Random generator for this replicate
        max_shift: Optional bound on the displacement

    Raises:
        ShuffleGeometryError: If no valid displacement is found for a class
    """
    shuffled: EventMap = {}
    for offset, annots in events.items():
        seg_len = segments.duration(offset)
        drawn: Dict[str, int] = {}
        out = {name: list(ints) for name, ints in annots.items()}

        for name in sorted(permutable):
            if name not in annots:
                continue

            if name in drawn:
                p = drawn[name]
            else:
                group = alignment.group_of(name)
                members = [i for g in sorted(group) for i in annots.get(g, ())]
                p_opt = draw_displacement(members, seg_len, rng, max_shift)
                if p_opt is None:
                    raise ShuffleGeometryError(name, "in segment starting at {}".format(offset))
                p = p_opt
                for g in group:
                    drawn[g] = p

            out[name] = rotate(annots[name], p, seg_len)
            logger.debug("shuffled {} by {} in segment {}".format(name, p, offset))

        shuffled[offset] = out

    return shuffled
