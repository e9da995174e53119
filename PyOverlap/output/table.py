"""In-memory tab-delimited result table.

``TableSink`` implements the stratified sink protocol by recording one
row per emitted value (the current strata, the variable name and the
value) and can write them as a tab-delimited table.
"""
from __future__ import annotations

import csv
import logging
import os
from typing import Dict, List, NamedTuple, Optional, TextIO, Tuple

from PyOverlap.interfaces.sink import SinkValue
from PyOverlap.utils.output import catch_IOError

logger = logging.getLogger(__name__)


class Row(NamedTuple):
    strata: Tuple[Tuple[str, str], ...]
    variable: str
    value: SinkValue


class TableSink:
    """Stratified sink keeping every value as a row.

    Example:
        sink = TableSink()
        sink.level("SP", "SEED")
        sink.value("N", 120)
        sink.unlevel("SEED")
        sink.get("N", SEED="SP")  # -> 120
    """
    DIALECT = "excel-tab"

    def __init__(self) -> None:
        self._strata: Dict[str, str] = {}
        self._order: List[str] = []
        self.rows: List[Row] = []

    def level(self, value: str, factor: str) -> None:
        if factor not in self._strata:
            self._order.append(factor)
        self._strata[factor] = str(value)

    def value(self, name: str, x: SinkValue) -> None:
        strata = tuple((f, self._strata[f]) for f in self._order)
        self.rows.append(Row(strata, name, x))

    def unlevel(self, factor: str) -> None:
        if factor not in self._strata:
            raise KeyError("factor {} is not open".format(factor))
        del self._strata[factor]
        self._order.remove(factor)

    def get(self, variable: str, **strata: str) -> Optional[SinkValue]:
        """Value of ``variable`` recorded under exactly the given strata."""
        key = tuple(sorted(strata.items()))
        for row in self.rows:
            if row.variable == variable and tuple(sorted(row.strata)) == key:
                return row.value
        return None

    def select(self, variable: str) -> List[Row]:
        return [row for row in self.rows if row.variable == variable]

    @staticmethod
    def _format(x: SinkValue) -> str:
        if isinstance(x, float):
            return "{:.6g}".format(x)
        return str(x)

    def write(self, stream: TextIO) -> None:
        """Write rows as ``strata<TAB>variable<TAB>value``; strata as ``F=v/F=v``."""
        writer = csv.writer(stream, dialect=self.DIALECT)
        writer.writerow(["STRATA", "VAR", "VALUE"])
        for row in self.rows:
            strata = "/".join("{}={}".format(f, v) for f, v in row.strata) or "."
            writer.writerow([strata, row.variable, self._format(row.value)])

    @catch_IOError(logger)
    def write_file(self, path: os.PathLike) -> None:
        logger.info("Output '{}'".format(path))
        with open(path, 'w', newline='') as f:
            self.write(f)
