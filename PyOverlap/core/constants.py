"""Constants used throughout PyOverlap for annotation overlap analysis.

Time is kept as integer time points; user-facing options and reported
distances are in seconds.
"""

TP_PER_SEC = 1000000000
"""int: Integer time points per second."""

NO_CHANNEL = "."
"""str: Channel label carried by annotations that are not channel-specific."""

MAX_SHUFFLE_ATTEMPTS = 500
"""int: Cap on rejected displacement draws per class and segment.

When a circular shuffle cannot find a displacement that keeps every
interval of a class (and its alignment group) inside the segment within
this many draws, the geometry is considered unable to host the class.
"""

INDIVIDUAL_SPACER_SEC = 10.0
"""float: Gap inserted between individuals in multi-individual mode.

Keeps the end of one individual's background from being joined with the
start of the next one when backgrounds are flattened.
"""

DEFAULT_NREPS = 1000
DEFAULT_WINDOW_SEC = 10.0
DEFAULT_SHUFFLE_TAG = "_shuffled"


def sec2tp(sec: float) -> int:
    """Convert seconds to integer time points."""
    return int(round(sec * TP_PER_SEC))


def tp2sec(tp: int) -> float:
    """Convert integer time points to seconds."""
    return tp / float(TP_PER_SEC)
