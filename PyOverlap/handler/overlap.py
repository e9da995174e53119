"""Overlap/enrichment analysis handler.

Orchestrates one analysis run:

- prep(): build background segments and the event registry, set up the
  shuffle engine
- loop(): evaluate the observed data, then fold ``nreps`` permuted
  replicates into the null accumulator
- output(): emit statistics to a sink and write derived annotations
"""
from __future__ import annotations

import logging
from typing import List, Optional, Sequence

import numpy as np

from PyOverlap.interfaces.annotation import AnnotationSource, AnnotationTarget, NamedInterval
from PyOverlap.interfaces.config import (
    OverlapConfig, ShuffleMode, annotation_output_configured, constrained_shuffle_configured
)
from PyOverlap.interfaces.sink import StatSink
from PyOverlap.interfaces.stats import StatisticsBundle
from PyOverlap.core.accumulator import NullAccumulator
from PyOverlap.core.background import SegmentMap
from PyOverlap.core.constants import INDIVIDUAL_SPACER_SEC
from PyOverlap.core.contrast import Contrast, apply_contrasts, parse_contrasts
from PyOverlap.core.eventperm import EventPermuter
from PyOverlap.core.exceptions import ConfigurationError, InternalInvariantError
from PyOverlap.core.persons import Individual, PersonIndex, concatenate_individuals
from PyOverlap.core.registry import EventMap, EventRegistry, RegistryBuilder
from PyOverlap.core.shuffle import circular_shuffle
from PyOverlap.core.statistics import evaluate
from PyOverlap.output.report import emit_report
from PyOverlap.utils.progress import ProgressBar

logger = logging.getLogger(__name__)


class OverlapHandler(object):
    """Annotation overlap/enrichment analysis.

    Attributes:
        source: Annotation lookup the classes are read from
        config: Analysis configuration
        target: Receiver of derived annotations (defaults to ``source``
            when it can store annotations)
        persons: Person spans; None for a single individual
        segments: Background segments (after prep)
        registry: Observed event registry (after prep)
        observed: Statistics of the observed data (after loop)
        null: Null accumulator (after loop)

    Example:
        handler = OverlapHandler(table, config)
        handler.run(sink)
    """

    def __init__(self, source: AnnotationSource, config: OverlapConfig,
                 target: Optional[AnnotationTarget] = None,
                 persons: Optional[PersonIndex] = None) -> None:
        self.source = source
        self.config = config
        if target is None and hasattr(source, "add_annotation"):
            target = source  # type: ignore
        self.target = target
        self.persons = persons
        self.multi_individual = persons is not None

        self.contrasts: List[Contrast] = parse_contrasts(config.contrasts)

        self.segments: Optional[SegmentMap] = None
        self.registry: Optional[EventRegistry] = None
        self.permuter: Optional[EventPermuter] = None
        self.observed: Optional[StatisticsBundle] = None
        self.null: Optional[NullAccumulator] = None

    @classmethod
    def from_individuals(cls, individuals: Sequence[Individual], config: OverlapConfig,
                         spacer_sec: float = INDIVIDUAL_SPACER_SEC,
                         target: Optional[AnnotationTarget] = None) -> OverlapHandler:
        """Analyse several individuals jointly.

        Raises:
            ConfigurationError: If no background class is configured
        """
        if not config.backgrounds:
            raise ConfigurationError("multi-individual mode requires a background ('bg') to be specified")
        classes = config.requested_classes + config.backgrounds + config.exclusions
        combined, persons = concatenate_individuals(individuals, classes, spacer_sec)
        return cls(combined, config, target=target, persons=persons)

    @property
    def permutable(self) -> List[str]:
        assert self.registry is not None
        return self.registry.permutable(self.config.shuffle_others)

    def prep(self) -> None:
        """Build segments and registry, and set up the shuffle engine."""
        cuts = self.persons.boundaries() if self.persons is not None else ()
        self.segments, self.registry = RegistryBuilder(self.source, self.config, cuts).build()
        self.registry.view()

        if self.persons is None:
            self.persons = PersonIndex.single(self.segments)

        if self.config.shuffle_mode is ShuffleMode.EVENT:
            self.permuter = EventPermuter(self.registry, self.segments, self.persons,
                                          self.permutable, self.config.event_window_tp)

        if constrained_shuffle_configured(self.config):
            logger.info("constraining shuffles to at most {} seconds in either direction".format(
                self.config.max_shuffle_sec))

    def evaluate_events(self, events: EventMap, collect_hits: bool = False) -> StatisticsBundle:
        assert self.registry is not None and self.segments is not None
        bundle = evaluate(events, self.registry.seeds, self.registry.classes, self.registry.channels,
                          self.segments.segments, self.config, collect_hits)
        return apply_contrasts(self.contrasts, bundle)

    def shuffle(self, rng: np.random.Generator) -> EventMap:
        """Randomized copy of the observed events."""
        assert self.registry is not None and self.segments is not None
        if self.permuter is not None:
            return self.permuter.permute(rng)
        max_shift = self.config.max_shuffle_tp if constrained_shuffle_configured(self.config) else None
        return circular_shuffle(self.registry.events, self.segments, self.registry.alignment,
                                self.permutable, rng, max_shift)

    def run_replicate(self, rng: np.random.Generator) -> StatisticsBundle:
        """Shuffle the observed events and evaluate the replicate."""
        return self.evaluate_events(self.shuffle(rng))

    def loop(self) -> NullAccumulator:
        """Evaluate the observed data and fold every replicate.

        Replicate ``i`` draws from the ``i``-th child of the run's seed
        sequence, so results do not depend on evaluation order.
        """
        assert self.registry is not None
        collect_hits = annotation_output_configured(self.config) and not self.multi_individual
        self.observed = self.evaluate_events(self.registry.events, collect_hits=collect_hits)
        self.null = NullAccumulator(self.observed)

        nreps = self.config.nreps
        if not nreps:
            logger.info("no replicates requested, reporting observed statistics only")
            return self.null

        seedseq = np.random.SeedSequence(self.config.random_seed)
        logger.info("running {} replicates (random seed entropy {})".format(nreps, seedseq.entropy))

        progress = ProgressBar()
        progress.set("replicates", nreps)
        for i, child in enumerate(seedseq.spawn(nreps)):
            rng = np.random.default_rng(child)
            events = self.shuffle(rng)
            if i == 0 and self.config.shuffled:
                self.write_shuffled(events)
            self.null.fold(self.evaluate_events(events))
            logger.debug("replicate {} done".format(i + 1))
            progress.update(i + 1)
        progress.clean()

        return self.null

    def output(self, sink: StatSink) -> None:
        """Emit all statistics and write derived seed annotations."""
        assert self.registry is not None and self.segments is not None
        assert self.observed is not None and self.null is not None
        emit_report(sink, self.observed, self.null, self.registry.tally, self.segments)
        if annotation_output_configured(self.config):
            self.new_seeds()

    def run(self, sink: StatSink) -> NullAccumulator:
        self.prep()
        null = self.loop()
        self.output(sink)
        return null

    def _require_target(self) -> AnnotationTarget:
        if self.target is None:
            raise ConfigurationError("derived annotations requested, but no annotation target is available")
        return self.target

    def write_shuffled(self, events: EventMap) -> None:
        """Write shuffled copies of the requested classes in absolute coordinates."""
        assert self.registry is not None
        target = self._require_target()
        tag = self.config.shuffle_tag
        n = 0
        for aid in sorted(self.registry.classes):
            name, channel = self.registry.name_channel[aid]
            if aid not in self.config.shuffled and name not in self.config.shuffled:
                continue
            for offset, annots in events.items():
                for i in annots.get(aid, ()):
                    target.add_annotation(name + tag, i.shift(offset), channel)
                    n += 1
        logger.info("wrote {} shuffled annotations with tag {}".format(n, tag))

    def new_seeds(self) -> None:
        """Write seeds with at least (matched) or fewer than (unmatched) ``m_count`` hits."""
        if self.multi_individual:
            logger.warning("cannot add new seed annotations when running in multi-individual mode")
            return
        assert self.registry is not None and self.observed is not None
        target = self._require_target()
        tag = self.config.annotation_tag
        include = self.config.annotation_include
        m = self.config.m_count

        n = 0
        for offset, annots in sorted(self.registry.events.items()):
            for aid in sorted(self.registry.seeds):
                for i in annots.get(aid, ()):
                    named = NamedInterval(offset, i, aid)
                    matched = self.observed.hits.get(named, 0) >= m
                    if matched != include:
                        continue
                    original = self.registry.originals.get(named)
                    if original is None:
                        raise InternalInvariantError("no original interval for seed {} at {}".format(
                            aid, i.shift(offset).as_string()))
                    name, _ = self.registry.name_channel[aid]
                    target.add_annotation("{}{}".format(name, tag), original.interval, original.channel)
                    n += 1

        logger.info("wrote {} {} seed annotations with tag {}".format(
            n, "matched" if include else "unmatched", tag))
