"""Emit observed statistics and their null summaries into a sink.

Layout (factors, then variables):
- root: registration tallies and background size
- SEEDS: pile-up groups (OBS, EXP, P, Z)
- SEED: seed counts and proportion overlapping any non-seed class
- SEED/OTHERS: seed-to-others signatures
- SEED/OTHER: overlap counts and nearest-neighbour distances
- SEED/OTHER/BIN: peri-event presence
- CONTRAST: user-defined contrasts
"""
from __future__ import annotations

import logging
from typing import Dict, Optional

from PyOverlap.interfaces.sink import StatSink
from PyOverlap.interfaces.stats import (
    ABS_DIST, CONTRAST, DIST_N, OVERLAP, PERI, PILEUP, PROPORTION, SEED_OTHERS, SIGNED_DIST,
    StatKey, StatisticsBundle
)
from PyOverlap.core.accumulator import NullAccumulator, NullSummary
from PyOverlap.core.background import SegmentMap
from PyOverlap.core.constants import tp2sec
from PyOverlap.core.registry import RejectionTally

logger = logging.getLogger(__name__)


def _null(sink: StatSink, prefix: str, summary: Optional[NullSummary], with_obs: bool = True) -> None:
    """Emit ``{prefix}OBS`` and, when replicates exist, EXP, P and Z."""
    if summary is None:
        return
    if with_obs:
        sink.value(prefix + "OBS", summary.observed)
    if summary.mean is not None:
        sink.value(prefix + "EXP", summary.mean)
        sink.value(prefix + "P", summary.p)  # type: ignore
        if summary.z is not None:
            sink.value(prefix + "Z", summary.z)


def emit_root(sink: StatSink, tally: RejectionTally, segments: SegmentMap) -> None:
    sink.value("NREG", tally.registered)
    sink.value("N_OUTSIDE_BG", tally.outside_background)
    sink.value("N_FILTERED", tally.filtered)
    sink.value("N_CHANNEL_EXCLUDED", tally.channel_excluded)
    sink.value("N_BAD_POSITION", tally.bad_position)
    sink.value("N_DUPLICATE", tally.duplicates)
    sink.value("N_UNKNOWN_CLASS", len(tally.unknown_classes))
    sink.value("NSEG", len(segments.segments))
    sink.value("BG_SEC", tp2sec(segments.total_duration))


def emit_report(sink: StatSink,
                observed: StatisticsBundle,
                null: NullAccumulator,
                tally: RejectionTally,
                segments: SegmentMap) -> None:
    """Write every statistic of the observed pass to ``sink``."""
    emit_root(sink, tally, segments)

    by_kind: Dict[str, Dict[StatKey, NullSummary]] = {}
    for key, summary in null.items():
        by_kind.setdefault(key.kind, {})[key] = summary

    # seed pile-ups
    for key, summary in sorted(by_kind.get(PILEUP, {}).items()):
        sink.level(key.other, "SEEDS")
        _null(sink, "", summary)
        sink.unlevel("SEEDS")

    # per seed: counts and proportion overlapping any non-seed class
    props = by_kind.get(PROPORTION, {})
    for seed in sorted(observed.ns):
        sink.level(seed, "SEED")
        sink.value("N", observed.ns[seed])
        prop = props.get(StatKey(PROPORTION, seed))
        if prop is not None:
            sink.value("PROP", prop.observed)
            _null(sink, "PROP_", prop, with_obs=False)
        sink.unlevel("SEED")

    # seed-to-others signatures
    for key, summary in sorted(by_kind.get(SEED_OTHERS, {}).items()):
        sink.level(key.seed, "SEED")
        sink.level(key.other, "OTHERS")
        _null(sink, "N_", summary)
        sink.unlevel("OTHERS")
        sink.unlevel("SEED")

    # pairwise overlap and distances
    pairs = sorted({(k.seed, k.other) for kind in (OVERLAP, ABS_DIST) for k in by_kind.get(kind, {})})
    for seed, other in pairs:
        sink.level(seed, "SEED")
        sink.level(other, "OTHER")

        n = by_kind.get(OVERLAP, {}).get(StatKey(OVERLAP, seed, other))
        if n is not None:
            if n.observed:
                sink.value("N_OBS", n.observed)
            _null(sink, "N_", n, with_obs=False)

        d1 = by_kind.get(ABS_DIST, {}).get(StatKey(ABS_DIST, seed, other))
        if d1 is not None:
            _null(sink, "D1_", d1, with_obs=True)
            dn = by_kind.get(DIST_N, {}).get(StatKey(DIST_N, seed, other))
            if dn is not None:
                sink.value("D_N", dn.observed)
                if dn.mean is not None:
                    sink.value("D_N_EXP", dn.mean)

        d2 = by_kind.get(SIGNED_DIST, {}).get(StatKey(SIGNED_DIST, seed, other))
        _null(sink, "D2_", d2)

        sink.unlevel("OTHER")
        sink.unlevel("SEED")

    # peri-event bins
    for key, summary in sorted(by_kind.get(PERI, {}).items()):
        sink.level(key.seed, "SEED")
        sink.level(key.other, "OTHER")
        sink.level(str(key.bin), "BIN")
        _null(sink, "PERI_", summary)
        sink.unlevel("BIN")
        sink.unlevel("OTHER")
        sink.unlevel("SEED")

    # contrasts
    for key, summary in sorted(by_kind.get(CONTRAST, {}).items()):
        sink.level(key.seed, "CONTRAST")
        _null(sink, "", summary)
        sink.unlevel("CONTRAST")

    logger.info("reported {} statistics over {} replicates".format(len(null.observed), null.replicates))
