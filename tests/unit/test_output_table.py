"""Tests for TableSink and report emission in PyOverlap.output."""
import io
import os
import shutil
import tempfile
import unittest

from PyOverlap.interfaces.annotation import Interval
from PyOverlap.interfaces.stats import StatisticsBundle
from PyOverlap.core.accumulator import NullAccumulator
from PyOverlap.core.background import SegmentMap
from PyOverlap.core.constants import sec2tp
from PyOverlap.core.registry import RejectionTally
from PyOverlap.output.report import emit_report
from PyOverlap.output.table import TableSink


class TestTableSink(unittest.TestCase):
    """Test the stratified table sink."""

    def setUp(self):
        self.sink = TableSink()
        self.sink.value("NREG", 12)
        self.sink.level("SP", "SEED")
        self.sink.value("N", 10)
        self.sink.level("SO", "OTHER")
        self.sink.value("D1_OBS", 0.5)
        self.sink.unlevel("OTHER")
        self.sink.unlevel("SEED")

    def test_get(self):
        self.assertEqual(self.sink.get("NREG"), 12)
        self.assertEqual(self.sink.get("N", SEED="SP"), 10)
        self.assertEqual(self.sink.get("D1_OBS", OTHER="SO", SEED="SP"), 0.5)
        self.assertIsNone(self.sink.get("D1_OBS", SEED="SP"))

    def test_select(self):
        self.assertEqual(len(self.sink.select("N")), 1)
        self.assertEqual(self.sink.select("N")[0].strata, (("SEED", "SP"),))

    def test_unlevel_unknown(self):
        with self.assertRaises(KeyError):
            self.sink.unlevel("SEED")

    def test_relevel_replaces_value(self):
        self.sink.level("SP", "SEED")
        self.sink.level("SQ", "SEED")
        self.sink.value("N", 3)
        self.assertEqual(self.sink.get("N", SEED="SQ"), 3)

    def test_write(self):
        stream = io.StringIO()
        self.sink.write(stream)
        lines = stream.getvalue().splitlines()
        self.assertEqual(lines[0], "STRATA\tVAR\tVALUE")
        self.assertEqual(lines[1], ".\tNREG\t12")
        self.assertEqual(lines[2], "SEED=SP\tN\t10")
        self.assertEqual(lines[3], "SEED=SP/OTHER=SO\tD1_OBS\t0.5")


class TestWriteFile(unittest.TestCase):
    """Test TableSink.write_file()."""

    def setUp(self):
        self.tmpdir = tempfile.mkdtemp()

    def tearDown(self):
        shutil.rmtree(self.tmpdir)

    def test_write_file(self):
        sink = TableSink()
        sink.value("NREG", 1)
        path = os.path.join(self.tmpdir, "out.tsv")
        sink.write_file(path)
        with open(path) as f:
            self.assertEqual(f.read().splitlines(), ["STRATA\tVAR\tVALUE", ".\tNREG\t1"])

    def test_write_file_error(self):
        sink = TableSink()
        path = os.path.join(self.tmpdir, "missing", "out.tsv")
        with self.assertLogs("PyOverlap.output.table", level="ERROR"):
            with self.assertRaises(IOError):
                sink.write_file(path)


class TestEmitReport(unittest.TestCase):
    """Test the report layout."""

    def setUp(self):
        observed = StatisticsBundle()
        observed.ns["SP"] = 4
        observed.psa["SP"] = 2
        observed.pairs.add(("SP", "SO"))
        observed.nsa[("SP", "SO")] = 2
        observed.ndist[("SP", "SO")] = 4
        observed.adist[("SP", "SO")] = 6.0
        observed.sdist[("SP", "SO")] = 2.0
        observed.s2a[("SP", "SO")] = 2
        observed.s2a[("SP", ".")] = 2
        observed.pileup["_O1"] = 4

        self.null = NullAccumulator(observed)
        replicate = StatisticsBundle()
        replicate.ns["SP"] = 4
        replicate.pairs.add(("SP", "SO"))
        replicate.nsa[("SP", "SO")] = 1
        self.null.fold(replicate)

        self.tally = RejectionTally(registered=8, outside_background=1)
        self.segments = SegmentMap.from_regions([Interval(0, sec2tp(50)), Interval(sec2tp(60), sec2tp(90))])
        self.sink = TableSink()
        emit_report(self.sink, observed, self.null, self.tally, self.segments)

    def test_root(self):
        self.assertEqual(self.sink.get("NREG"), 8)
        self.assertEqual(self.sink.get("N_OUTSIDE_BG"), 1)
        self.assertEqual(self.sink.get("NSEG"), 2)
        self.assertEqual(self.sink.get("BG_SEC"), 80.0)

    def test_seed(self):
        self.assertEqual(self.sink.get("N", SEED="SP"), 4)
        self.assertEqual(self.sink.get("PROP", SEED="SP"), 0.5)
        self.assertEqual(self.sink.get("PROP_EXP", SEED="SP"), 0.0)

    def test_pair(self):
        self.assertEqual(self.sink.get("N_OBS", SEED="SP", OTHER="SO"), 2)
        self.assertEqual(self.sink.get("N_EXP", SEED="SP", OTHER="SO"), 1.0)
        self.assertEqual(self.sink.get("N_P", SEED="SP", OTHER="SO"), 0.5)
        self.assertEqual(self.sink.get("D1_OBS", SEED="SP", OTHER="SO"), 1.5)
        self.assertEqual(self.sink.get("D2_OBS", SEED="SP", OTHER="SO"), 0.5)
        self.assertEqual(self.sink.get("D_N", SEED="SP", OTHER="SO"), 4)
        self.assertIsNone(self.sink.get("D1_EXP", SEED="SP", OTHER="SO"))

    def test_signatures_and_pileup(self):
        self.assertEqual(self.sink.get("N_OBS", SEED="SP", OTHERS="SO"), 2)
        self.assertEqual(self.sink.get("N_OBS", SEED="SP", OTHERS="."), 2)
        self.assertEqual(self.sink.get("OBS", SEEDS="_O1"), 4)
        self.assertEqual(self.sink.get("EXP", SEEDS="_O1"), 0.0)


if __name__ == '__main__':
    unittest.main()
