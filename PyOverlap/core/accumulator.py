"""Null distribution accumulation.

The observed pass fixes which statistics are tracked.  Every permuted
replicate is folded in as running sums, sums of squares and a tail
tally, from which the null mean, variance, z-score and empirical
p-value are derived.  Folding is order independent.
"""
from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from typing import Dict, Iterator, Optional, Tuple

from PyOverlap.interfaces.stats import (
    ABS_DIST, COUNT_KINDS, SIGNED_DIST, StatKey, StatisticsBundle
)

logger = logging.getLogger(__name__)


def in_tail(kind: str, value: float, observed: float) -> bool:
    """Check whether a null value is at least as extreme as the observed one.

    Mean absolute distances are extreme when closer (smaller), mean signed
    statistics when larger in magnitude, everything else when larger.
    """
    if kind == ABS_DIST:
        return value <= observed
    if kind == SIGNED_DIST:
        return abs(value) > abs(observed)
    return value >= observed


@dataclass(frozen=True)
class NullSummary:
    """Observed value against its null distribution."""
    observed: float
    n: int
    mean: Optional[float]
    var: Optional[float]
    z: Optional[float]
    p: Optional[float]


class NullAccumulator:
    """Running null moments for every statistic of the observed pass."""

    def __init__(self, observed: StatisticsBundle) -> None:
        self.observed: Dict[StatKey, float] = observed.values()
        self.n: Dict[StatKey, int] = {k: 0 for k in self.observed}
        self.sum: Dict[StatKey, float] = {k: 0.0 for k in self.observed}
        self.sumsq: Dict[StatKey, float] = {k: 0.0 for k in self.observed}
        self.tail: Dict[StatKey, int] = {k: 0 for k in self.observed}
        self.replicates = 0

    def fold(self, bundle: StatisticsBundle) -> None:
        """Add one replicate."""
        values = bundle.values()
        self.replicates += 1
        for key, obs in self.observed.items():
            value = values.get(key)
            if value is None:
                if key.kind not in COUNT_KINDS:
                    continue
                value = 0.0
            self.n[key] += 1
            self.sum[key] += value
            self.sumsq[key] += value * value
            if in_tail(key.kind, value, obs):
                self.tail[key] += 1

    def merge(self, other: NullAccumulator) -> None:
        """Combine with an accumulator built from the same observed pass."""
        for key in self.observed:
            self.n[key] += other.n.get(key, 0)
            self.sum[key] += other.sum.get(key, 0.0)
            self.sumsq[key] += other.sumsq.get(key, 0.0)
            self.tail[key] += other.tail.get(key, 0)
        self.replicates += other.replicates

    def summary(self, key: StatKey) -> NullSummary:
        """Null summary of one statistic; moments are None without replicates."""
        obs = self.observed[key]
        n = self.n[key]
        if not n:
            return NullSummary(obs, 0, None, None, None, None)

        mean = self.sum[key] / n
        var = self.sumsq[key] / n - mean * mean
        # guard against rounding below zero
        if var < 0:
            var = 0.0
        z = (obs - mean) / math.sqrt(var) if var > 0 else None
        p = (self.tail[key] + 1) / float(n + 1)
        return NullSummary(obs, n, mean, var, z, p)

    def items(self) -> Iterator[Tuple[StatKey, NullSummary]]:
        for key in sorted(self.observed):
            yield key, self.summary(key)

    def __contains__(self, key: object) -> bool:
        return key in self.observed
