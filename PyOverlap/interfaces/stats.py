"""Statistics bundle produced by one evaluation pass.

A ``StatisticsBundle`` holds the raw tallies of a single pass (observed
data or one permuted replicate).  ``values()`` flattens them into
``StatKey`` -> value pairs, which is what the null accumulator folds and
contrasts resolve against.
"""
from __future__ import annotations

from collections import defaultdict
from dataclasses import dataclass, field
from typing import DefaultDict, Dict, NamedTuple, Optional, Set, Tuple

from PyOverlap.interfaces.annotation import NamedInterval

# statistic kinds
OVERLAP = "N"
ABS_DIST = "D1"
SIGNED_DIST = "D2"
DIST_N = "DN"
PROPORTION = "PROP"
SEED_OTHERS = "S2A"
PERI = "PERI"
PILEUP = "SEEDS"
CONTRAST = "CONTRAST"

#: Kinds that are counts: a key missing from a replicate contributes 0
COUNT_KINDS = frozenset((OVERLAP, DIST_N, SEED_OTHERS, PERI, PILEUP))
#: Kinds that are ratios: a key missing from a replicate is skipped
RATIO_KINDS = frozenset((ABS_DIST, SIGNED_DIST, PROPORTION, CONTRAST))

NO_OTHERS = "."


class StatKey(NamedTuple):
    """Address of one statistic.

    Attributes:
        kind: One of the statistic kinds above
        seed: Seed class id (contrast label for contrasts)
        other: Comparison class id, seed-to-others signature or pile-up group
        bin: Signed peri-event bin index
    """
    kind: str
    seed: str = ""
    other: str = ""
    bin: int = 0


def _count_map() -> DefaultDict:
    return defaultdict(int)


def _float_map() -> DefaultDict:
    return defaultdict(float)


@dataclass
class StatisticsBundle:
    """Raw tallies of one evaluation pass.

    Attributes:
        ns: Seed class -> number of seed intervals
        nsa: (seed, other) -> number of overlapping seed intervals
        psa: Seed class -> seeds overlapping at least one non-seed class
        adist: (seed, other) -> summed truncated absolute distance (seconds)
        sdist: (seed, other) -> summed signed statistic
        ndist: (seed, other) -> number of distance samples
        pairs: (seed, other) pairs compared in at least one segment
        peri: (seed, other, bin) -> seeds with the other class in the bin
        s2a: (seed, signature) -> seeds with that set of overlapping non-seeds
        pileup: Pile-up group key -> count
        contrasts: Contrast label -> value (only defined contrasts)
        hits: Seed named interval -> number of matching overlaps
    """
    ns: DefaultDict[str, int] = field(default_factory=_count_map)
    nsa: DefaultDict[Tuple[str, str], int] = field(default_factory=_count_map)
    psa: DefaultDict[str, int] = field(default_factory=_count_map)
    adist: DefaultDict[Tuple[str, str], float] = field(default_factory=_float_map)
    sdist: DefaultDict[Tuple[str, str], float] = field(default_factory=_float_map)
    ndist: DefaultDict[Tuple[str, str], int] = field(default_factory=_count_map)
    pairs: Set[Tuple[str, str]] = field(default_factory=set)
    peri: DefaultDict[Tuple[str, str, int], int] = field(default_factory=_count_map)
    s2a: DefaultDict[Tuple[str, str], int] = field(default_factory=_count_map)
    pileup: DefaultDict[str, int] = field(default_factory=_count_map)
    contrasts: Dict[str, float] = field(default_factory=dict)
    hits: DefaultDict[NamedInterval, int] = field(default_factory=_count_map)

    def prop(self, seed: str) -> Optional[float]:
        n = self.ns.get(seed, 0)
        if not n:
            return None
        return self.psa.get(seed, 0) / n

    def mean_abs_dist(self, seed: str, other: str) -> Optional[float]:
        n = self.ndist.get((seed, other), 0)
        if not n:
            return None
        return self.adist[(seed, other)] / n

    def mean_signed_dist(self, seed: str, other: str) -> Optional[float]:
        n = self.ndist.get((seed, other), 0)
        if not n:
            return None
        return self.sdist[(seed, other)] / n

    def values(self) -> Dict[StatKey, float]:
        """All defined statistics keyed by ``StatKey``."""
        out: Dict[StatKey, float] = {}

        for seed, other in self.pairs:
            out[StatKey(OVERLAP, seed, other)] = self.nsa.get((seed, other), 0)
        for (seed, other), n in self.ndist.items():
            if not n:
                continue
            out[StatKey(ABS_DIST, seed, other)] = self.adist[(seed, other)] / n
            out[StatKey(SIGNED_DIST, seed, other)] = self.sdist[(seed, other)] / n
            out[StatKey(DIST_N, seed, other)] = n
        for seed in self.ns:
            p = self.prop(seed)
            if p is not None:
                out[StatKey(PROPORTION, seed)] = p
        for (seed, sig), n in self.s2a.items():
            out[StatKey(SEED_OTHERS, seed, sig)] = n
        for (seed, other, k), n in self.peri.items():
            out[StatKey(PERI, seed, other, k)] = n
        for group, n in self.pileup.items():
            out[StatKey(PILEUP, "", group)] = n
        for label, v in self.contrasts.items():
            out[StatKey(CONTRAST, label)] = v

        return out

    def resolve(self, key: str) -> Optional[float]:
        """Resolve a textual statistic key (``N:SEED:OTHER``, ``PROP:SEED``...).

        Returns:
            The statistic value, or None when undefined in this pass
        """
        kind, _, rest = key.partition(":")
        if kind == PILEUP:
            return float(self.pileup.get(rest, 0)) if rest else None
        if kind == PROPORTION:
            return self.prop(rest)

        seed, sep, other = rest.partition(":")
        if not sep:
            return None
        if kind == OVERLAP:
            if (seed, other) not in self.pairs:
                return None
            return float(self.nsa.get((seed, other), 0))
        if kind == ABS_DIST:
            return self.mean_abs_dist(seed, other)
        if kind == SIGNED_DIST:
            return self.mean_signed_dist(seed, other)
        return None
