"""Exceptions for PyOverlap annotation overlap analysis.

Fatal conditions are raised as exceptions; data-quality conditions
(intervals outside the background, filtered instances, unknown classes)
are never raised but counted in the registry's rejection tally.
"""


class OverlapError(Exception):
    """Base class of all fatal PyOverlap errors."""
    pass


class ConfigurationError(OverlapError, ValueError):
    """Exception raised for contradictory, missing or out-of-range options.

    Raised during setup, before any replicate is evaluated, so that a
    misconfigured run never produces partial output.
    """
    pass


class ShuffleGeometryError(OverlapError):
    """Exception raised when no valid randomized layout can be found.

    The background/segment geometry cannot host the intervals of the named
    annotation class (or alignment partition), e.g. every candidate
    displacement makes some interval straddle a segment end.
    """

    def __init__(self, name: str, detail: str = "") -> None:
        self.name = name
        message = "cannot find any valid shuffle for {}".format(name)
        if detail:
            message += ": " + detail
        message += "; please sanity-check the number/size of background/event intervals"
        super(ShuffleGeometryError, self).__init__(message)


class InternalInvariantError(OverlapError, AssertionError):
    """Exception raised when an internal invariant is broken.

    Continuing would silently corrupt the null distribution, so these
    are treated as defects and never recovered from.
    """
    pass
