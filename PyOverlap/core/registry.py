"""Event registry: per-segment, segment-local annotation intervals.

Reads the raw instances of every seed and comparison class through an
annotation lookup, resolves effective (optionally channel-qualified)
class ids, applies channel lists, metadata filters and point reductions,
assigns each interval to its background segment in segment-local
coordinates and adds flanking margins.  Rejected instances are counted,
never silently discarded.
"""
from __future__ import annotations

import logging
from collections import defaultdict
from dataclasses import dataclass, field
from typing import Dict, FrozenSet, Iterable, List, Mapping, Optional, Sequence, Set, Tuple

from PyOverlap.interfaces.annotation import AnnotationInstance, AnnotationSource, Interval, NamedInterval
from PyOverlap.interfaces.config import OverlapConfig
from PyOverlap.core.background import SegmentMap, build_segments
from PyOverlap.core.constants import NO_CHANNEL, sec2tp, tp2sec
from PyOverlap.core.exceptions import ConfigurationError, InternalInvariantError

logger = logging.getLogger(__name__)

# segment offset -> class id -> sorted unique segment-local intervals
EventMap = Dict[int, Dict[str, List[Interval]]]


@dataclass
class RejectionTally:
    """Counts of instances dropped during registration."""
    registered: int = 0
    outside_background: int = 0
    filtered: int = 0
    channel_excluded: int = 0
    bad_position: int = 0
    duplicates: int = 0
    unknown_classes: List[str] = field(default_factory=list)

    @property
    def total_rejected(self) -> int:
        return (self.outside_background + self.filtered + self.channel_excluded + self.bad_position
                + self.duplicates)

    def report(self) -> None:
        if self.outside_background:
            logger.warning("{} intervals span a background breakpoint or fall outside the background; "
                           "excluded".format(self.outside_background))
        if self.filtered:
            logger.warning("excluded {} of {} annotations based on filters, leaving {}".format(
                self.filtered, self.filtered + self.registered, self.registered))
        if self.channel_excluded:
            logger.info("excluded {} annotations based on channel lists".format(self.channel_excluded))
        if self.bad_position:
            logger.warning("{} annotations lacked a valid relative position".format(self.bad_position))
        if self.duplicates:
            logger.info("{} duplicate intervals collapsed after registration transforms".format(self.duplicates))
        for name in self.unknown_classes:
            logger.warning("could not find annotation class {}".format(name))


@dataclass(frozen=True)
class AlignmentGroups:
    """Immutable mapping of class id to the classes sharing its displacement.

    Produced once at registry build (after per-channel expansion) and
    passed explicitly to the shuffle routines.
    """
    groups: Tuple[FrozenSet[str], ...] = ()

    def group_of(self, name: str) -> FrozenSet[str]:
        """Members shuffled together with ``name`` (itself included)."""
        for group in self.groups:
            if name in group:
                return group
        return frozenset((name,))

    def is_aligned(self, name: str) -> bool:
        return any(name in group for group in self.groups)

    def partitions(self, names: Iterable[str]) -> List[FrozenSet[str]]:
        """Split ``names`` into alignment partitions (singletons when unaligned)."""
        out: List[FrozenSet[str]] = []
        seen: Set[str] = set()
        for name in sorted(names):
            if name in seen:
                continue
            part = frozenset(n for n in self.group_of(name) if n in names) | {name}
            seen.update(part)
            out.append(part)
        return out


@dataclass
class EventRegistry:
    """Registered intervals plus the per-class bookkeeping built alongside.

    Attributes:
        events: Segment offset -> class id -> segment-local intervals
        seeds: Seed class ids (channel-qualified where not pooled)
        classes: All registered class ids
        name_channel: Class id -> (original class name, channel or ".")
        channels: Class id -> channel, for within-channel comparisons
        fixed: Class ids never permuted
        midpoints: Class ids reduced to midpoints
        flanks: Class id -> flanking margin in time points
        alignment: Alignment groups over class ids
        originals: Named interval -> un-transformed source instance
        tally: Rejection counts
    """
    events: EventMap
    seeds: FrozenSet[str]
    classes: FrozenSet[str]
    name_channel: Dict[str, Tuple[str, str]]
    channels: Dict[str, str]
    fixed: FrozenSet[str]
    midpoints: FrozenSet[str]
    flanks: Dict[str, int]
    alignment: AlignmentGroups
    originals: Dict[NamedInterval, AnnotationInstance]
    tally: RejectionTally

    def intervals(self, offset: int, name: str) -> List[Interval]:
        return self.events.get(offset, {}).get(name, [])

    def permutable(self, shuffle_others: bool) -> List[str]:
        base = self.classes if shuffle_others else self.seeds
        return sorted(c for c in base if c not in self.fixed)

    def count(self, name: str) -> int:
        return sum(len(annots.get(name, ())) for annots in self.events.values())

    def view(self) -> None:
        """Dump every registered interval at DEBUG level."""
        for offset in sorted(self.events):
            for name in sorted(self.events[offset]):
                for i in self.events[offset][name]:
                    logger.debug("region = {}\tannot = {}\tevent = {}".format(offset, name, i.as_string()))


class RegistryBuilder:
    """Build the segment map and event registry from an annotation lookup.

    Segments are additionally cut at ``cuts``, so that individuals laid
    out end to end never share a segment.

    Example:
        segments, registry = RegistryBuilder(source, config).build()
    """

    def __init__(self, source: AnnotationSource, config: OverlapConfig, cuts: Sequence[int] = ()) -> None:
        self.source = source
        self.config = config
        self.cuts = list(cuts)
        self.tally = RejectionTally()

        self.midpoints: Set[str] = set(config.midpoint_annots)
        self.flanks: Dict[str, float] = dict(config.flank_sec_annot)
        self.fixed: Set[str] = set(config.fixed)
        self.aligned: List[Set[str]] = [set(g) for g in config.align]

    def _fetch(self, names: Iterable[str], track_unknown: bool = True) -> Dict[str, List[AnnotationInstance]]:
        found = {}
        for name in names:
            instances = list(self.source.fetch_intervals(name))
            if not instances:
                if track_unknown:
                    self.tally.unknown_classes.append(name)
                else:
                    logger.warning("could not find background annotation class {}".format(name))
                continue
            found[name] = instances
        return found

    def build(self) -> Tuple[SegmentMap, EventRegistry]:
        """Read classes, build segments, and register every instance.

        Raises:
            ConfigurationError: If no seed class yields any instance, or the
                background cannot form a segment
        """
        config = self.config

        bgs = self._fetch(config.backgrounds, track_unknown=False)
        xbgs = self._fetch(config.exclusions, track_unknown=False)
        seeds = self._fetch(config.seeds)
        others = self._fetch(config.others)

        if not seeds:
            raise ConfigurationError("no matching seed annotations found")

        requested: Dict[str, Tuple[bool, List[AnnotationInstance]]] = {}
        for name, instances in seeds.items():
            requested[name] = (True, instances)
        for name, instances in others.items():
            requested[name] = (False, instances)

        last_stop = max(inst.interval.stop for _, insts in requested.values() for inst in insts)

        segments = build_segments(
            (inst.interval for insts in bgs.values() for inst in insts),
            (inst.interval for insts in xbgs.values() for inst in insts),
            edge_tp=config.edge_tp if bgs else 0,
            fallback_stop=last_stop,
            cuts=self.cuts,
        )

        events: Dict[int, Dict[str, Set[Interval]]] = defaultdict(lambda: defaultdict(set))
        seed_ids: Set[str] = set()
        class_ids: Set[str] = set()
        name_channel: Dict[str, Tuple[str, str]] = {}
        channels: Dict[str, str] = {}
        originals: Dict[NamedInterval, AnnotationInstance] = {}

        for name in sorted(requested):
            is_seed, instances = requested[name]
            for inst in instances:
                aid, pooled = self._class_id(name, inst.channel)

                if not self._process_channel(name, inst.channel):
                    self.tally.channel_excluded += 1
                    continue

                if not pooled:
                    self._expand_channel_settings(name, aid)

                if config.has_filters and not self._passes_filters(inst.meta):
                    self.tally.filtered += 1
                    continue

                interval = self._reduce(name, aid, inst)
                if interval is None:
                    self.tally.bad_position += 1
                    continue

                offset = segments.locate(interval)
                if offset is None:
                    self.tally.outside_background += 1
                    continue

                local = self._rebase(interval, offset)
                local = self._add_flank(aid, is_seed, local, segments.duration(offset))

                if local in events[offset][aid]:
                    # first instance keeps the original coordinates
                    self.tally.duplicates += 1
                    continue
                events[offset][aid].add(local)
                originals[NamedInterval(offset, local, aid)] = inst

                class_ids.add(aid)
                if is_seed:
                    seed_ids.add(aid)
                name_channel[aid] = (name, NO_CHANNEL if pooled else inst.channel)
                channels[aid] = name_channel[aid][1]
                self.tally.registered += 1

        flanks = {aid: self._flank_tp(aid, aid in seed_ids) for aid in class_ids}
        alignment = AlignmentGroups(tuple(
            frozenset(g) for g in self.aligned if g & class_ids
        ))

        registry = EventRegistry(
            events={off: {aid: sorted(ints) for aid, ints in annots.items()}
                    for off, annots in sorted(events.items())},
            seeds=frozenset(seed_ids),
            classes=frozenset(class_ids),
            name_channel=name_channel,
            channels=channels,
            fixed=frozenset(self.fixed),
            midpoints=frozenset(self.midpoints),
            flanks={aid: f for aid, f in flanks.items() if f},
            alignment=alignment,
            originals=originals,
            tally=self.tally,
        )

        logger.info("registered {} intervals across {} annotation classes, including {} seed(s)".format(
            self.tally.registered, len(class_ids), len(seed_ids)))
        self.tally.report()
        self._log_summary(registry)

        return segments, registry

    def _class_id(self, name: str, channel: str) -> Tuple[str, bool]:
        config = self.config
        pooled = config.pool_channels and (
            not config.pool_channel_sets or name in config.pool_channel_sets
        )
        if channel == NO_CHANNEL:
            pooled = True
        return (name if pooled else "{}_{}".format(name, channel)), pooled

    def _process_channel(self, name: str, channel: str) -> bool:
        inc = self.config.chs_inc.get(name)
        if inc is not None and channel not in inc:
            return False
        exc = self.config.chs_exc.get(name)
        if exc is not None and channel in exc:
            return False
        return True

    def _expand_channel_settings(self, name: str, aid: str) -> None:
        """Carry class-level settings over to a channel-qualified id."""
        if name in self.midpoints:
            self.midpoints.add(aid)
        if name in self.flanks:
            self.flanks.setdefault(aid, self.flanks[name])
        if name in self.fixed:
            self.fixed.add(aid)
        for group in self.aligned:
            if name in group:
                group.add(aid)

    def _passes_filters(self, meta: Mapping[str, object]) -> bool:
        for label, lwr in self.config.flt_lwr.items():
            if label in meta:
                value = _as_float(meta[label])
                if value is None or value < lwr:
                    return False
        for label, upr in self.config.flt_upr.items():
            if label in meta:
                value = _as_float(meta[label])
                if value is None or value > upr:
                    return False
        return True

    def _reduce(self, name: str, aid: str, inst: AnnotationInstance) -> Optional[Interval]:
        interval = inst.interval
        key = self.config.rel_position.get(name, self.config.rel_position.get(aid))
        if key is not None:
            frac = _as_float(inst.meta.get(key))
            if frac is None or not 0.0 <= frac <= 1.0:
                return None
            p = interval.start + int(round(frac * interval.duration))
            return Interval(p, p)
        if self.config.midpoint or aid in self.midpoints or name in self.midpoints:
            m = interval.mid
            return Interval(m, m)
        return interval

    @staticmethod
    def _rebase(interval: Interval, offset: int) -> Interval:
        if offset > interval.start or offset > interval.stop:
            raise InternalInvariantError(
                "segment offset {} exceeds interval {}".format(offset, tuple(interval)))
        return Interval(interval.start - offset, interval.stop - offset)

    def _flank_tp(self, aid: str, is_seed: bool) -> int:
        if is_seed and self.config.flank_sec > 0:
            return self.config.flank_tp
        if aid in self.flanks:
            return sec2tp(self.flanks[aid])
        return 0

    def _add_flank(self, aid: str, is_seed: bool, local: Interval, seg_dur: int) -> Interval:
        f = self._flank_tp(aid, is_seed)
        if not f:
            return local
        return Interval(max(local.start - f, 0), min(local.stop + f, seg_dur))

    def _log_summary(self, registry: EventRegistry) -> None:
        n: Dict[str, int] = defaultdict(int)
        dur: Dict[str, int] = defaultdict(int)
        for annots in registry.events.values():
            for aid, ints in annots.items():
                n[aid] += len(ints)
                dur[aid] += sum(i.duration for i in ints)

        permutable = set(registry.permutable(self.config.shuffle_others))
        for aid in sorted(n):
            line = "{} {} : n = {} , mins = {:.3f} , avg. dur (s) = {:.3f}".format(
                aid, "[seed]" if aid in registry.seeds else "[other]", n[aid],
                tp2sec(dur[aid]) / 60.0, tp2sec(dur[aid]) / n[aid])
            if registry.alignment.is_aligned(aid):
                line += " [aligned shuffle]"
            if aid not in permutable:
                line += " [fixed]"
            if aid in registry.midpoints or self.config.midpoint:
                line += " [midpoint]"
            if aid in registry.flanks:
                line += " [f={}]".format(tp2sec(registry.flanks[aid]))
            logger.info(line)

        for group in registry.alignment.groups:
            logger.info("aligned permute : {}".format(" ".join(sorted(group))))


def _as_float(value: object) -> Optional[float]:
    try:
        return float(value)  # type: ignore
    except (TypeError, ValueError):
        return None
