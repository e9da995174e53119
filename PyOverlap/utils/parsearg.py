"""Command-line style option parsing for overlap analyses.

Key functionality:
- Common arguments (logging, progress, colour) as in every entry point
- Custom argparse actions for validation and for keyed list options
  (per-class flanks, channel lists, metadata filters)
- get_overlap_parser(): parser for all analysis options
- parse_overlap_args(): parse, set up logging and build an OverlapConfig
"""
import argparse
import logging
import sys
from typing import Any, Dict, List, Optional, Sequence, Set, Tuple, Union

import PyOverlap
from PyOverlap.core.constants import DEFAULT_SHUFFLE_TAG, DEFAULT_WINDOW_SEC
from PyOverlap.interfaces.config import OverlapConfig, ShuffleMode, SignedMode
from PyOverlap.utils.logfmt import set_rootlogger
from PyOverlap.utils.progress import ProgressBase

SHUFFLE_MODES = tuple(e.value for e in ShuffleMode)
SIGNED_MODES = tuple(e.value for e in SignedMode)


def _make_upper(s: str) -> str:
    return s.upper()


def _split_keyed(parser: argparse.ArgumentParser, option: str, value: str) -> Tuple[str, str]:
    key, sep, rest = value.rpartition(":")
    if not sep or not key or not rest:
        parser.error("argument {} expects CLASS:VALUE, got '{}'".format(option, value))
    return key, rest


class StoreLoggingLevel(argparse.Action):
    """Convert a logging level name to its logging module constant."""
    def __call__(
        self,
        parser: argparse.ArgumentParser,
        namespace: argparse.Namespace,
        values: Union[Any, Sequence[Any], None],
        option_string: Optional[str] = None
    ) -> None:
        assert isinstance(values, str), "Logging level must be a string"
        setattr(namespace, self.dest, getattr(logging, values))


class ForceNaturalNumber(argparse.Action):
    """Ensure an integer argument is positive (> 0)."""
    def __call__(
        self,
        parser: argparse.ArgumentParser,
        namespace: argparse.Namespace,
        values: Union[Any, Sequence[Any], None],
        option_string: Optional[str] = None
    ) -> None:
        assert isinstance(values, int), "Argument must be an integer"
        if values < 1:
            parser.error("argument {} must be > 0.".format('/'.join(self.option_strings)))
        setattr(namespace, self.dest, values)


class ForceNonNegative(argparse.Action):
    """Ensure a numeric argument is >= 0."""
    def __call__(
        self,
        parser: argparse.ArgumentParser,
        namespace: argparse.Namespace,
        values: Union[Any, Sequence[Any], None],
        option_string: Optional[str] = None
    ) -> None:
        assert isinstance(values, (int, float)), "Argument must be a number"
        if values < 0:
            parser.error("argument {} must be >= 0.".format('/'.join(self.option_strings)))
        setattr(namespace, self.dest, values)


class ToColorizeOption(argparse.Action):
    """Convert 'TRUE'/'FALSE' to a colourised logging switch."""
    def __call__(
        self,
        parser: argparse.ArgumentParser,
        namespace: argparse.Namespace,
        values: Union[Any, Sequence[Any], None],
        option_string: Optional[str] = None
    ) -> None:
        assert isinstance(values, str), "Colorization option must be a string"
        if values == "TRUE":
            colorize = True
        elif values == "FALSE":
            colorize = False
        else:
            colorize = sys.stderr.isatty()
        setattr(namespace, self.dest, colorize)


class StoreFlank(argparse.Action):
    """Collect ``SEC`` (generic flank) and ``CLASS:SEC`` (per-class flank).

    Stored as ``(generic_sec, {class: sec})``.
    """
    def __call__(
        self,
        parser: argparse.ArgumentParser,
        namespace: argparse.Namespace,
        values: Union[Any, Sequence[Any], None],
        option_string: Optional[str] = None
    ) -> None:
        generic, per_class = getattr(namespace, self.dest) or (0.0, {})
        per_class = dict(per_class)
        for value in values:  # type: ignore
            try:
                if ":" in value:
                    name, sec = _split_keyed(parser, option_string or "-f", value)
                    per_class[name] = float(sec)
                else:
                    generic = float(value)
            except ValueError:
                parser.error("argument {}: invalid flank '{}'".format(option_string, value))
        setattr(namespace, self.dest, (generic, per_class))


class StoreChannelList(argparse.Action):
    """Collect ``CLASS:CH1,CH2`` into ``{class: {ch1, ch2}}``."""
    def __call__(
        self,
        parser: argparse.ArgumentParser,
        namespace: argparse.Namespace,
        values: Union[Any, Sequence[Any], None],
        option_string: Optional[str] = None
    ) -> None:
        chs: Dict[str, Set[str]] = dict(getattr(namespace, self.dest) or {})
        for value in values:  # type: ignore
            name, channels = _split_keyed(parser, option_string or self.dest, value)
            chs.setdefault(name, set()).update(c for c in channels.split(",") if c)
        setattr(namespace, self.dest, chs)


class StoreRelPosition(argparse.Action):
    """Collect ``CLASS:KEY`` meta keys holding a relative position in [0, 1]."""
    def __call__(
        self,
        parser: argparse.ArgumentParser,
        namespace: argparse.Namespace,
        values: Union[Any, Sequence[Any], None],
        option_string: Optional[str] = None
    ) -> None:
        rel: Dict[str, str] = dict(getattr(namespace, self.dest) or {})
        for value in values:  # type: ignore
            name, key = _split_keyed(parser, option_string or self.dest, value)
            rel[name] = key
        setattr(namespace, self.dest, rel)


class StoreFilter(argparse.Action):
    """Collect ``KEY LWR UPR`` metadata filters; ``.`` leaves a side open.

    Stored as ``({key: lwr}, {key: upr})``.
    """
    def __call__(
        self,
        parser: argparse.ArgumentParser,
        namespace: argparse.Namespace,
        values: Union[Any, Sequence[Any], None],
        option_string: Optional[str] = None
    ) -> None:
        lwr, upr = getattr(namespace, self.dest) or ({}, {})
        lwr, upr = dict(lwr), dict(upr)
        key, low, high = values  # type: ignore
        try:
            if low != ".":
                lwr[key] = float(low)
            if high != ".":
                upr[key] = float(high)
        except ValueError:
            parser.error("argument {}: invalid filter bounds for {}".format(option_string, key))
        setattr(namespace, self.dest, (lwr, upr))


class AppendGroup(argparse.Action):
    """Append each occurrence's values as one group."""
    def __call__(
        self,
        parser: argparse.ArgumentParser,
        namespace: argparse.Namespace,
        values: Union[Any, Sequence[Any], None],
        option_string: Optional[str] = None
    ) -> None:
        groups: List[List[str]] = list(getattr(namespace, self.dest) or [])
        groups.append(list(values))  # type: ignore
        setattr(namespace, self.dest, groups)


def add_common_args(parser: argparse.ArgumentParser) -> None:
    """Add logging, progress control and colour output arguments."""
    parser.add_argument(
        "-v", "--log-level", type=_make_upper, default=logging.INFO,
        action=StoreLoggingLevel, choices=("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"),
        help="Set verbosity. (Default: INFO)"
    )
    parser.add_argument(
        "--disable-progress", action="store_true",
        help="Disable progress bar"
    )
    parser.add_argument(
        "--color", type=_make_upper, default=True, action=ToColorizeOption, choices=("TRUE", "FALSE"),
        help="Coloring log. (Default: auto)"
    )
    parser.add_argument(
        "--version", action="version", version="PyOverlap " + PyOverlap.VERSION
    )


def add_class_args(group: argparse._ArgumentGroup) -> None:
    group.add_argument(
        "--seed", nargs='+', required=True, metavar="CLASS",
        help="Seed annotation classes."
    )
    group.add_argument(
        "--other", nargs='+', metavar="CLASS",
        help="Comparison annotation classes."
    )
    group.add_argument(
        "--bg", nargs='+', metavar="CLASS",
        help="Background classes defining the analysis segments. "
             "(Default: one segment from 0 to the last annotation end)"
    )
    group.add_argument(
        "--xbg", nargs='+', metavar="CLASS",
        help="Classes excised from the background. Requires --bg."
    )


def add_registration_args(group: argparse._ArgumentGroup) -> None:
    group.add_argument(
        "--midpoint", nargs='*', metavar="CLASS",
        help="Reduce intervals to their midpoints; all classes when given without names."
    )
    group.add_argument(
        "--rel-position", nargs='+', metavar="CLASS:KEY", action=StoreRelPosition,
        help="Reduce intervals of CLASS to the point at the relative position held in meta KEY."
    )
    group.add_argument(
        "-f", "--flank", nargs='+', metavar="SEC|CLASS:SEC", action=StoreFlank, default=(0.0, {}),
        help="Extend seed intervals (SEC) or intervals of CLASS (CLASS:SEC) on both sides."
    )
    group.add_argument(
        "--edges", type=float, default=0.0, action=ForceNonNegative,
        help="Trim this many seconds from both edges of each background region. (Default: 0)"
    )
    group.add_argument(
        "--pool-channels", nargs='*', metavar="CLASS",
        help="Ignore channels; only for the named classes when names are given."
    )
    group.add_argument(
        "--within-channel", action="store_true",
        help="Only compare classes recorded on the same channel."
    )
    group.add_argument(
        "--chs-inc", nargs='+', metavar="CLASS:CH,CH", action=StoreChannelList,
        help="Only keep these channels of CLASS."
    )
    group.add_argument(
        "--chs-exc", nargs='+', metavar="CLASS:CH,CH", action=StoreChannelList,
        help="Drop these channels of CLASS."
    )
    group.add_argument(
        "--flt", nargs=3, metavar=("KEY", "LWR", "UPR"), action=StoreFilter,
        help="Keep instances whose meta KEY lies in [LWR, UPR] ('.' for open). Repeatable."
    )


def add_shuffle_args(group: argparse._ArgumentGroup) -> None:
    group.add_argument(
        "--nreps", type=int, action=ForceNonNegative,
        help="Number of permuted replicates. (Default: 1000, or 0 with --matched/--unmatched)"
    )
    group.add_argument(
        "--random-seed", type=int,
        help="Seed for the random number generator."
    )
    group.add_argument(
        "--shuffle-mode", type=str.lower, default=ShuffleMode.CIRCULAR.value, choices=SHUFFLE_MODES,
        help="Circular shuffle within segments, or event permutation. (Default: circular)"
    )
    group.add_argument(
        "--align", nargs='+', metavar="CLASS", action=AppendGroup,
        help="Shuffle these classes by a common displacement. Repeatable."
    )
    group.add_argument(
        "--shuffle-others", action="store_true",
        help="Also shuffle comparison classes."
    )
    group.add_argument(
        "--fixed", nargs='+', metavar="CLASS",
        help="Never shuffle these classes."
    )
    group.add_argument(
        "--max-shuffle", type=float, action=ForceNonNegative,
        help="Bound circular displacements to this many seconds in either direction."
    )
    group.add_argument(
        "--event-window", type=float, default=0.0, action=ForceNonNegative,
        help="Chain events within this many seconds into one neighbourhood for event permutation."
    )


def add_stats_args(group: argparse._ArgumentGroup) -> None:
    group.add_argument(
        "-w", "--window", type=float, default=DEFAULT_WINDOW_SEC, action=ForceNonNegative,
        help="Truncate nearest-neighbour distances at this many seconds. (Default: {})".format(DEFAULT_WINDOW_SEC)
    )
    group.add_argument(
        "--dist-excludes-overlapping", action="store_true",
        help="Leave overlapping pairs out of the distance statistics."
    )
    group.add_argument(
        "--overlap", type=float, default=0.0,
        help="Minimum fraction of the seed covered for an overlap to count. (Default: 0)"
    )
    group.add_argument(
        "--signed", type=str.lower, default=SignedMode.SIGN.value, choices=SIGNED_MODES,
        help="Signed distance statistic: +/-1 per pair, or signed distance. (Default: sign)"
    )
    group.add_argument(
        "--no-pileup", dest="pileup", action="store_false",
        help="Skip seed pile-up groups."
    )
    group.add_argument(
        "--ordered", action="store_true",
        help="Distinguish pile-up groups by seed order."
    )
    group.add_argument(
        "--peri-bins", type=int, default=0, action=ForceNonNegative,
        help="Number of peri-event bins on each side of a seed. (Default: 0)"
    )
    group.add_argument(
        "--peri-width", type=float, default=0.0, action=ForceNonNegative,
        help="Width of each peri-event bin in seconds."
    )
    group.add_argument(
        "--contrast", action="append", metavar="LABEL=KEY OP KEY",
        help="Contrast of two statistics, e.g. 'd=N:SP:SO - N:SP:K'. Repeatable."
    )


def add_derived_args(group: argparse._ArgumentGroup) -> None:
    tags = group.add_mutually_exclusive_group()
    tags.add_argument(
        "--matched", metavar="TAG",
        help="Write seeds overlapping at least --m-count comparison classes as CLASS+TAG."
    )
    tags.add_argument(
        "--unmatched", metavar="TAG",
        help="Write seeds overlapping fewer than --m-count comparison classes as CLASS+TAG."
    )
    group.add_argument(
        "--m-count", type=int, default=1, action=ForceNaturalNumber,
        help="Matches required for --matched/--unmatched. (Default: 1)"
    )
    group.add_argument(
        "--seed-seed", action="store_true",
        help="Count other seed classes as matches."
    )
    group.add_argument(
        "--shuffled", nargs='+', metavar="CLASS",
        help="Write the first replicate's shuffled copies of these classes."
    )
    group.add_argument(
        "--shuffle-tag", default=DEFAULT_SHUFFLE_TAG,
        help="Suffix of shuffled copies. (Default: {})".format(DEFAULT_SHUFFLE_TAG)
    )


def add_output_args(group: argparse._ArgumentGroup) -> None:
    group.add_argument(
        "-o", "--output", metavar="FILE",
        help="Write the tab-delimited result table to FILE. (Default: standard output)"
    )


def get_overlap_parser() -> argparse.ArgumentParser:
    """Create the overlap/enrichment analysis argument parser."""
    parser = argparse.ArgumentParser(
        description="Annotation overlap and enrichment analysis with "
                    "permutation-based null distributions.",
        formatter_class=argparse.RawDescriptionHelpFormatter
    )

    add_common_args(parser)
    add_class_args(parser.add_argument_group("Annotation classes"))
    add_registration_args(parser.add_argument_group("Registration"))
    add_shuffle_args(parser.add_argument_group("Shuffling"))
    add_stats_args(parser.add_argument_group("Statistics"))
    add_derived_args(parser.add_argument_group("Derived annotations"))
    add_output_args(parser.add_argument_group("Output"))

    return parser


def parse_overlap_args(argv: Optional[Sequence[str]] = None) -> Tuple[argparse.Namespace, OverlapConfig]:
    """Parse options, configure logging and progress, and build the configuration.

    Raises:
        ConfigurationError: On inconsistent options
    """
    args = get_overlap_parser().parse_args(argv)

    set_rootlogger(args.color, args.log_level)
    if args.disable_progress:
        ProgressBase.global_switch = False

    return args, OverlapConfig.from_args(args)

