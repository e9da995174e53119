"""Seed-versus-annotation statistics for one evaluation pass.

For every segment and seed class, each seed interval is compared against
every other registered class: overlap, nearest-neighbour distance and
its sign, peri-event presence, and the set of non-seed classes it
overlaps.  Seed intervals of all seed classes are also grouped into
pile-ups of mutually overlapping seeds.

Key functions:
- seed_annot_stats(): seed class vs one flattened comparison class
- pileup(): seed pile-up group tallies for one segment
- evaluate(): full pass over a set of events
"""
from __future__ import annotations

import logging
from bisect import bisect_left
from collections import defaultdict
from typing import Dict, Iterable, List, Mapping, Optional, Sequence, Set, Tuple

from PyOverlap.interfaces.annotation import Interval, NamedInterval
from PyOverlap.interfaces.config import OverlapConfig, SignedMode
from PyOverlap.interfaces.stats import NO_OTHERS, StatisticsBundle
from PyOverlap.core.constants import tp2sec
from PyOverlap.core.intervals import covered_duration, flatten
from PyOverlap.core.registry import EventMap

logger = logging.getLogger(__name__)


def nearest(seed: Interval, flat: Sequence[Interval]) -> Optional[Tuple[int, int]]:
    """Gap (time points) from ``seed`` to its nearest interval, and its side.

    Returns:
        ``(gap, side)`` where side is 0 on overlap, -1 when the nearest
        interval comes before the seed and +1 when it comes after (ties
        resolve to before).  A touching interval is on a side with a gap
        of 0.  None when ``flat`` is empty.
    """
    if not flat:
        return None

    idx = bisect_left(flat, seed)
    right: Optional[int] = None

    if idx < len(flat):
        cand = flat[idx]
        if seed.overlaps(cand):
            return 0, 0
        right = cand.start - seed.stop

    if idx > 0:
        cand = flat[idx - 1]
        if seed.overlaps(cand):
            return 0, 0
        left = seed.start - cand.stop
        if right is None or left <= right:
            return left, -1

    return right, 1  # type: ignore


def present(window: Interval, flat: Sequence[Interval]) -> bool:
    """Check whether any interval of a flattened set touches ``window``.

    Zero-duration intervals count when they fall inside the window.
    """
    idx = bisect_left([f.stop for f in flat], window.start)
    while idx < len(flat) and flat[idx].start < window.stop:
        cand = flat[idx]
        if cand.stop > window.start or cand.start == window.start:
            return True
        idx += 1
    return False


def peri_windows(seed: Interval, nbins: int, width: int, seg_len: int) -> Dict[int, Interval]:
    """Bin windows ``-K..-1`` before and ``1..K`` after a seed, clipped to the segment."""
    out = {}
    for k in range(1, nbins + 1):
        lo = max(seed.start - k * width, 0)
        hi = max(seed.start - (k - 1) * width, 0)
        if hi > lo:
            out[-k] = Interval(lo, hi)
        lo = min(seed.stop + (k - 1) * width, seg_len)
        hi = min(seed.stop + k * width, seg_len)
        if hi > lo:
            out[k] = Interval(lo, hi)
    return out


def seed_annot_stats(seeds: Sequence[Interval], seed_name: str,
                     flat: Sequence[Interval], other_name: str,
                     offset: int, seg_len: int,
                     config: OverlapConfig,
                     other_is_seed: bool,
                     bundle: StatisticsBundle,
                     overlapping: Dict[NamedInterval, Set[str]],
                     collect_hits: bool = False) -> None:
    """Accumulate seed-vs-other statistics for one segment into ``bundle``.

    Args:
        seeds: Seed intervals (segment-local)
        seed_name: Seed class id
        flat: Flattened comparison intervals (segment-local)
        other_name: Comparison class id
        offset: Segment offset, for seed identities
        seg_len: Segment duration, bounding peri-event windows
        config: Analysis configuration
        other_is_seed: Whether the comparison class is itself a seed class
        bundle: Tallies to update
        overlapping: Seed identity -> overlapping non-seed classes
        collect_hits: Also count matches for derived seed annotations
    """
    if not flat:
        return

    bundle.pairs.add((seed_name, other_name))
    window = config.window_sec
    pair = (seed_name, other_name)

    for seed in seeds:
        gap, side = nearest(seed, flat)  # type: ignore
        hit = side == 0
        overlap = hit

        if overlap and config.overlap_th > 0 and seed.duration:
            if covered_duration(seed, flat) < config.overlap_th * seed.duration:
                overlap = False

        if overlap:
            bundle.nsa[pair] += 1
            if not other_is_seed:
                overlapping[NamedInterval(offset, seed, seed_name)].add(other_name)
            if collect_hits and (config.seed_seed or not other_is_seed):
                bundle.hits[NamedInterval(offset, seed, seed_name)] += 1

        if config.include_overlap_in_dist or not hit:
            dist = min(tp2sec(gap), window)
            bundle.adist[pair] += dist
            # touching neighbours still count on their side
            if side:
                if config.signed_mode is SignedMode.SIGN:
                    bundle.sdist[pair] += side
                else:
                    bundle.sdist[pair] += side * dist
            bundle.ndist[pair] += 1

        if config.peri_bins:
            for k, win in peri_windows(seed, config.peri_bins, config.peri_width_tp, seg_len).items():
                if present(win, flat):
                    bundle.peri[(seed_name, other_name, k)] += 1


def signature(names: Iterable[str], ordered: bool) -> str:
    """Join class names into a group signature."""
    if ordered:
        return ",".join(names)
    return ",".join(sorted(set(names)))


def pileup(named: Iterable[NamedInterval], ordered: bool = False) -> Dict[str, int]:
    """Group seed intervals into runs of overlapping seeds.

    Seeds are walked in (interval, class) order; a new group starts when
    a seed begins at or after the running group end.  Each group adds to
    ``_O{n}`` (group size) and ``{n}:{signature}``.
    """
    tallies: Dict[str, int] = defaultdict(int)
    items = sorted(named, key=NamedInterval.sort_key)
    if not items:
        return tallies

    def close(basket: List[NamedInterval]) -> None:
        n = len(basket)
        tallies["_O{}".format(n)] += 1
        tallies["{}:{}".format(n, signature((b.name for b in basket), ordered))] += 1

    basket = [items[0]]
    last_stop = items[0].interval.stop
    for item in items[1:]:
        if item.interval.start >= last_stop:
            close(basket)
            basket = [item]
            last_stop = item.interval.stop
        else:
            basket.append(item)
            last_stop = max(last_stop, item.interval.stop)
    close(basket)

    return tallies


def evaluate(events: EventMap,
             seeds: Iterable[str],
             classes: Iterable[str],
             channels: Mapping[str, str],
             segments: Mapping[int, int],
             config: OverlapConfig,
             collect_hits: bool = False) -> StatisticsBundle:
    """Compute every statistic for one set of events.

    Args:
        events: Segment offset -> class id -> segment-local intervals
        seeds: Seed class ids
        classes: All class ids
        channels: Class id -> channel, for within-channel comparisons
        segments: Segment offset -> duration
        config: Analysis configuration
        collect_hits: Count per-seed matches for derived seed annotations

    Returns:
        Tallies of this pass (contrasts not yet applied)
    """
    seeds = sorted(seeds)
    seed_set = set(seeds)
    classes = sorted(classes)
    bundle = StatisticsBundle()

    for offset in sorted(events):
        annots = events[offset]
        seg_len = segments[offset]
        piled: List[NamedInterval] = []
        flattened: Dict[str, List[Interval]] = {}

        for a in seeds:
            a_ints = annots.get(a)
            if not a_ints:
                continue

            bundle.ns[a] += len(a_ints)
            if config.pileup:
                piled.extend(NamedInterval(offset, i, a) for i in a_ints)

            overlapping: Dict[NamedInterval, Set[str]] = {NamedInterval(offset, i, a): set() for i in a_ints}

            for b in classes:
                if b == a:
                    continue
                if config.within_channel and channels.get(a) != channels.get(b):
                    continue
                b_ints = annots.get(b)
                if not b_ints:
                    continue
                if b not in flattened:
                    flattened[b] = flatten(b_ints, join_adjacent=False)
                seed_annot_stats(a_ints, a, flattened[b], b, offset, seg_len, config,
                                 b in seed_set, bundle, overlapping, collect_hits)

            for matched in overlapping.values():
                sig = ",".join(sorted(matched)) if matched else NO_OTHERS
                bundle.s2a[(a, sig)] += 1
                if matched:
                    bundle.psa[a] += 1

        if config.pileup and piled:
            for group, n in pileup(piled, config.ordered).items():
                bundle.pileup[group] += n

    return bundle
