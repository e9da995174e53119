"""Configuration models and type definitions for PyOverlap.

Defines shuffle/distance enums and the main OverlapConfig dataclass
holding every parameter of an overlap/enrichment run.  Time-valued
options are stored in seconds; the ``*_tp`` properties convert them to
integer time points.
"""
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Protocol, Set
from enum import Enum
from argparse import Namespace

import sys

if sys.version_info >= (3, 10):
    from typing import TypeGuard
else:
    from typing_extensions import TypeGuard

if sys.version_info >= (3, 11):
    from typing import Self
else:
    from typing_extensions import Self

from PyOverlap.core.constants import DEFAULT_NREPS, DEFAULT_WINDOW_SEC, DEFAULT_SHUFFLE_TAG, sec2tp
from PyOverlap.core.exceptions import ConfigurationError
from PyOverlap.core.contrast import parse_contrasts


class ShuffleMode(Enum):
    """How replicates are randomized."""
    CIRCULAR = "circular"
    EVENT = "event"


class SignedMode(Enum):
    """How the signed nearest-neighbour statistic is encoded."""
    SIGN = "sign"
    CONTINUOUS = "continuous"


class ConstrainedShuffleConfig(Protocol):
    """Protocol for a circular shuffle with bounded displacement."""
    shuffle_mode: ShuffleMode
    max_shuffle_sec: float


class AnnotationOutputConfig(Protocol):
    """Protocol for writing matched/unmatched seed annotations."""
    annotation_tag: str
    annotation_include: bool
    m_count: int


@dataclass
class OverlapConfig:
    """Configuration for an annotation overlap/enrichment analysis.

    Central configuration object: which classes are seeds, comparisons
    and backgrounds, how intervals are transformed on registration, how
    replicates are shuffled, and which statistics are computed.
    """
    seeds: List[str]
    others: List[str] = field(default_factory=list)
    backgrounds: List[str] = field(default_factory=list)
    exclusions: List[str] = field(default_factory=list)

    nreps: int = DEFAULT_NREPS
    nreps_explicit: bool = False
    random_seed: Optional[int] = None

    # registration
    midpoint: bool = False
    midpoint_annots: Set[str] = field(default_factory=set)
    rel_position: Dict[str, str] = field(default_factory=dict)
    flank_sec: float = 0.0
    flank_sec_annot: Dict[str, float] = field(default_factory=dict)
    edge_sec: float = 0.0
    pool_channels: bool = False
    pool_channel_sets: Set[str] = field(default_factory=set)
    within_channel: bool = False
    chs_inc: Dict[str, Set[str]] = field(default_factory=dict)
    chs_exc: Dict[str, Set[str]] = field(default_factory=dict)
    flt_lwr: Dict[str, float] = field(default_factory=dict)
    flt_upr: Dict[str, float] = field(default_factory=dict)

    # shuffling
    shuffle_mode: ShuffleMode = ShuffleMode.CIRCULAR
    align: List[List[str]] = field(default_factory=list)
    shuffle_others: bool = False
    fixed: Set[str] = field(default_factory=set)
    max_shuffle_sec: Optional[float] = None
    event_window_sec: float = 0.0

    # statistics
    window_sec: float = DEFAULT_WINDOW_SEC
    include_overlap_in_dist: bool = True
    overlap_th: float = 0.0
    signed_mode: SignedMode = SignedMode.SIGN
    pileup: bool = True
    ordered: bool = False
    peri_bins: int = 0
    peri_width_sec: float = 0.0
    contrasts: List[str] = field(default_factory=list)

    # derived annotations
    annotation_tag: Optional[str] = None
    annotation_include: bool = True
    m_count: int = 1
    seed_seed: bool = False
    shuffled: Set[str] = field(default_factory=set)
    shuffle_tag: str = DEFAULT_SHUFFLE_TAG

    def __post_init__(self) -> None:
        self.validate()
        # matched/unmatched output only needs the observed pass unless asked
        if self.annotation_tag is not None and not self.nreps_explicit:
            self.nreps = 0

    def validate(self) -> None:
        """Check option consistency.

        Raises:
            ConfigurationError: On contradictory, missing or negative options
        """
        if not self.seeds:
            raise ConfigurationError("require at least one seed annotation class")
        clash = set(self.seeds) & set(self.others)
        if clash:
            raise ConfigurationError(
                "cannot specify an annotation as both seed and other: {}".format(",".join(sorted(clash))))
        if self.nreps < 0:
            raise ConfigurationError("nreps must be >= 0")
        if self.flank_sec < 0 or self.window_sec < 0:
            raise ConfigurationError("invalid negative values for flank and/or window")
        if any(v < 0 for v in self.flank_sec_annot.values()):
            raise ConfigurationError("invalid negative per-annotation flank")
        if self.edge_sec < 0:
            raise ConfigurationError("invalid negative background edge")
        if not 0 <= self.overlap_th <= 1:
            raise ConfigurationError("invalid value for overlap threshold (0 - 1)")
        if self.within_channel and self.pool_channels:
            raise ConfigurationError("cannot specify within-channel and pool-channels together")
        if self.chs_inc and self.chs_exc:
            raise ConfigurationError("cannot specify both chs-inc and chs-exc lists")
        if self.exclusions and not self.backgrounds:
            raise ConfigurationError("xbg requires bg to be explicitly specified")
        if self.max_shuffle_sec is not None:
            if self.max_shuffle_sec < 0:
                raise ConfigurationError("max-shuffle must be positive")
            if self.shuffle_mode is not ShuffleMode.CIRCULAR:
                raise ConfigurationError("max-shuffle is only valid with circular shuffling")
        if self.event_window_sec < 0:
            raise ConfigurationError("invalid negative event-permutation window")
        if self.peri_bins < 0 or self.peri_width_sec < 0:
            raise ConfigurationError("invalid negative peri-event bins/width")
        if self.peri_bins > 0 and self.peri_width_sec == 0:
            raise ConfigurationError("peri-event bins require a positive bin width")
        if self.m_count < 1:
            raise ConfigurationError("m-count must be >= 1")
        for lwr_label, lwr in self.flt_lwr.items():
            upr = self.flt_upr.get(lwr_label)
            if upr is not None and upr < lwr:
                raise ConfigurationError("empty filter range for {}".format(lwr_label))
        parse_contrasts(self.contrasts)
        seen: Set[str] = set()
        for group in self.align:
            overlap = seen & set(group)
            if overlap:
                raise ConfigurationError(
                    "annotation in more than one alignment group: {}".format(",".join(sorted(overlap))))
            seen.update(group)

    @property
    def flank_tp(self) -> int:
        return sec2tp(self.flank_sec)

    @property
    def window_tp(self) -> int:
        return sec2tp(self.window_sec)

    @property
    def edge_tp(self) -> int:
        return sec2tp(self.edge_sec)

    @property
    def max_shuffle_tp(self) -> int:
        return sec2tp(self.max_shuffle_sec) if self.max_shuffle_sec is not None else 0

    @property
    def event_window_tp(self) -> int:
        return sec2tp(self.event_window_sec)

    @property
    def peri_width_tp(self) -> int:
        return sec2tp(self.peri_width_sec)

    @property
    def has_filters(self) -> bool:
        return bool(self.flt_lwr or self.flt_upr)

    @property
    def requested_classes(self) -> List[str]:
        """Seed and other class names, seeds first."""
        return list(self.seeds) + [o for o in self.others if o not in self.seeds]

    @classmethod
    def from_args(cls, args: Namespace) -> Self:
        """Create configuration from parsed command-line arguments."""
        if args.matched is not None:
            tag, include = args.matched, True
        elif args.unmatched is not None:
            tag, include = args.unmatched, False
        else:
            tag, include = None, True

        midpoint = args.midpoint is not None and not args.midpoint
        midpoint_annots = set(args.midpoint) if args.midpoint else set()

        return cls(
            seeds=args.seed,
            others=args.other or [],
            backgrounds=args.bg or [],
            exclusions=args.xbg or [],
            nreps=args.nreps if args.nreps is not None else DEFAULT_NREPS,
            nreps_explicit=args.nreps is not None,
            random_seed=args.random_seed,
            midpoint=midpoint,
            midpoint_annots=midpoint_annots,
            rel_position=dict(args.rel_position or {}),
            flank_sec=args.flank[0],
            flank_sec_annot=args.flank[1],
            edge_sec=args.edges,
            pool_channels=args.pool_channels is not None,
            pool_channel_sets=set(args.pool_channels or ()),
            within_channel=args.within_channel,
            chs_inc=args.chs_inc or {},
            chs_exc=args.chs_exc or {},
            flt_lwr=args.flt[0] if args.flt else {},
            flt_upr=args.flt[1] if args.flt else {},
            shuffle_mode=ShuffleMode(args.shuffle_mode),
            align=args.align or [],
            shuffle_others=args.shuffle_others,
            fixed=set(args.fixed or ()),
            max_shuffle_sec=args.max_shuffle,
            event_window_sec=args.event_window,
            window_sec=args.window,
            include_overlap_in_dist=not args.dist_excludes_overlapping,
            overlap_th=args.overlap,
            signed_mode=SignedMode(args.signed),
            pileup=args.pileup,
            ordered=args.ordered,
            peri_bins=args.peri_bins,
            peri_width_sec=args.peri_width,
            contrasts=args.contrast or [],
            annotation_tag=tag,
            annotation_include=include,
            m_count=args.m_count,
            seed_seed=args.seed_seed,
            shuffled=set(args.shuffled or ()),
            shuffle_tag=args.shuffle_tag,
        )


def constrained_shuffle_configured(config: OverlapConfig) -> TypeGuard[ConstrainedShuffleConfig]:
    """Check if a bounded circular displacement is set."""
    return (
        config.shuffle_mode is ShuffleMode.CIRCULAR and
        config.max_shuffle_sec is not None
    )


def annotation_output_configured(config: OverlapConfig) -> TypeGuard[AnnotationOutputConfig]:
    """Check if matched/unmatched seed output is requested."""
    return config.annotation_tag is not None
