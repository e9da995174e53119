"""Interval-set algebra over half-open integer intervals.

All functions take any iterable of ``Interval`` and return new sorted
lists; inputs are never modified.

Key functions:
- flatten(): merge overlapping (optionally touching) intervals
- excise(): subtract a set of holes from a set of targets
- intersect(): pairwise intersection of two sets
- split_at(): cut intervals at given time points
- total_duration(): summed duration (meaningful on disjoint sets)
"""
from __future__ import annotations

from bisect import bisect_left, bisect_right
from typing import Iterable, List

from PyOverlap.interfaces.annotation import Interval


def flatten(intervals: Iterable[Interval], join_adjacent: bool = False) -> List[Interval]:
    """Merge overlapping intervals into a disjoint, ordered list.

    Args:
        intervals: Intervals in any order
        join_adjacent: Also merge touching intervals ((a, b), (b, c) -> (a, c))

    Returns:
        Sorted list of disjoint intervals covering the same time points
    """
    ordered = sorted(intervals)
    if not ordered:
        return []

    merged: List[Interval] = []
    cur_start, cur_stop = ordered[0]
    for start, stop in ordered[1:]:
        gap = start > cur_stop if join_adjacent else start >= cur_stop
        if gap:
            merged.append(Interval(cur_start, cur_stop))
            cur_start, cur_stop = start, stop
        elif stop > cur_stop:
            cur_stop = stop
    merged.append(Interval(cur_start, cur_stop))

    return merged


def excise(targets: Iterable[Interval], holes: Iterable[Interval]) -> List[Interval]:
    """Remove holes from each target interval.

    Holes are flattened (joining touching ones) first; each target yields
    zero or more non-empty remaining pieces.
    """
    targets = sorted(targets)
    fholes = flatten(holes, join_adjacent=True)
    if not fholes or not targets:
        return targets

    hole_stops = [h.stop for h in fholes]
    pieces: List[Interval] = []

    for target in targets:
        # first hole ending after the target starts
        idx = bisect_left(hole_stops, target.start + 1)
        if idx == len(fholes) or fholes[idx].start >= target.stop:
            pieces.append(target)
            continue

        cur = target.start
        while idx < len(fholes) and fholes[idx].start < target.stop:
            hole = fholes[idx]
            if cur < hole.start:
                pieces.append(Interval(cur, hole.start))
            cur = max(cur, hole.stop)
            if cur >= target.stop:
                break
            idx += 1
        if cur < target.stop:
            pieces.append(Interval(cur, target.stop))

    return sorted(pieces)


def intersect(a: Iterable[Interval], b: Iterable[Interval]) -> List[Interval]:
    """Intersect two interval sets; both are flattened first."""
    fa = flatten(a, join_adjacent=True)
    fb = flatten(b, join_adjacent=True)

    out: List[Interval] = []
    i = j = 0
    while i < len(fa) and j < len(fb):
        start = max(fa[i].start, fb[j].start)
        stop = min(fa[i].stop, fb[j].stop)
        if start < stop:
            out.append(Interval(start, stop))
        if fa[i].stop < fb[j].stop:
            i += 1
        else:
            j += 1

    return out


def split_at(intervals: Iterable[Interval], points: Iterable[int]) -> List[Interval]:
    """Cut every interval at the points lying strictly inside it."""
    cuts = sorted(set(points))
    out: List[Interval] = []
    for i in sorted(intervals):
        start = i.start
        for p in cuts[bisect_right(cuts, i.start):bisect_left(cuts, i.stop)]:
            out.append(Interval(start, p))
            start = p
        out.append(Interval(start, i.stop))
    return out


def total_duration(intervals: Iterable[Interval]) -> int:
    """Sum of interval durations."""
    return sum(i.stop - i.start for i in intervals)


def covered_duration(target: Interval, flat: List[Interval]) -> int:
    """Duration of ``target`` covered by an already flattened set."""
    stops = [f.stop for f in flat]
    idx = bisect_left(stops, target.start + 1)
    covered = 0
    while idx < len(flat) and flat[idx].start < target.stop:
        covered += min(flat[idx].stop, target.stop) - max(flat[idx].start, target.start)
        idx += 1
    return covered
