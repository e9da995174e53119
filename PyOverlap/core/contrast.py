"""User-defined contrasts between two statistics.

A contrast is written ``label=LEFT OP RIGHT`` where LEFT and RIGHT are
statistic keys (``N:SEED:OTHER``, ``D1:SEED:OTHER``, ``D2:SEED:OTHER``,
``PROP:SEED``, ``SEEDS:GROUP``) and OP is one of ``- + * /``.  The
contrast is evaluated on every pass and accumulated like any other
statistic.
"""
from __future__ import annotations

import logging
import operator
from typing import Callable, Dict, List, NamedTuple, Optional, Sequence

from PyOverlap.interfaces.stats import StatisticsBundle
from PyOverlap.core.exceptions import ConfigurationError

logger = logging.getLogger(__name__)

OPERATORS: Dict[str, Callable[[float, float], float]] = {
    "-": operator.sub,
    "+": operator.add,
    "*": operator.mul,
    "/": operator.truediv,
}

KEY_KINDS = ("N", "D1", "D2", "PROP", "SEEDS")


class Contrast(NamedTuple):
    label: str
    left: str
    op: str
    right: str

    @classmethod
    def parse(cls, text: str) -> Contrast:
        """Parse ``label=LEFT OP RIGHT``.

        Raises:
            ConfigurationError: On a malformed definition
        """
        label, sep, expr = text.partition("=")
        tokens = expr.split()
        if not sep or not label.strip() or len(tokens) != 3:
            raise ConfigurationError("bad contrast definition '{}', expecting label=KEY OP KEY".format(text))
        left, op, right = tokens
        if op not in OPERATORS:
            raise ConfigurationError("bad contrast operator '{}' in '{}'".format(op, text))
        for key in (left, right):
            if key.partition(":")[0] not in KEY_KINDS:
                raise ConfigurationError("bad statistic key '{}' in contrast '{}'".format(key, text))
        return cls(label.strip(), left, op, right)

    def evaluate(self, bundle: StatisticsBundle) -> Optional[float]:
        """Value on one pass, or None if an operand is undefined or the divisor is zero."""
        a = bundle.resolve(self.left)
        b = bundle.resolve(self.right)
        if a is None or b is None:
            return None
        if self.op == "/" and b == 0:
            return None
        return OPERATORS[self.op](a, b)


def parse_contrasts(texts: Sequence[str]) -> List[Contrast]:
    contrasts = [Contrast.parse(t) for t in texts]
    labels = [c.label for c in contrasts]
    if len(set(labels)) != len(labels):
        raise ConfigurationError("duplicate contrast labels")
    return contrasts


def apply_contrasts(contrasts: Sequence[Contrast], bundle: StatisticsBundle) -> StatisticsBundle:
    """Store every defined contrast value in ``bundle.contrasts``."""
    for c in contrasts:
        v = c.evaluate(bundle)
        if v is None:
            logger.debug("contrast {} undefined in this pass".format(c.label))
            continue
        bundle.contrasts[c.label] = v
    return bundle
