"""Tests for event registration in PyOverlap.core.registry."""
import unittest

from PyOverlap.interfaces.annotation import AnnotationTable, Interval, NamedInterval
from PyOverlap.interfaces.config import OverlapConfig
from PyOverlap.core.constants import sec2tp as S
from PyOverlap.core.exceptions import ConfigurationError
from PyOverlap.core.registry import AlignmentGroups, RegistryBuilder


def build(table, **kwargs):
    return RegistryBuilder(table, OverlapConfig(**kwargs)).build()


class TestRegistration(unittest.TestCase):
    """Test basic registration and segment assignment."""

    def setUp(self):
        self.table = AnnotationTable()
        self.table.add("BG", 0, S(50))
        self.table.add("BG", S(60), S(90))
        self.table.add("SP", S(10), S(11))
        self.table.add("SP", S(49), S(51))
        self.table.add("SP", S(65), S(66))
        self.table.add("SO", S(65.5), S(70))

    def test_segment_local_coordinates(self):
        segments, registry = build(self.table, seeds=["SP"], others=["SO"], backgrounds=["BG"])
        self.assertEqual(registry.events[0]["SP"], [Interval(S(10), S(11))])
        self.assertEqual(registry.events[S(60)]["SP"], [Interval(S(5), S(6))])
        self.assertEqual(registry.events[S(60)]["SO"], [Interval(S(5.5), S(10))])

    def test_spanning_breakpoint_counted(self):
        _, registry = build(self.table, seeds=["SP"], others=["SO"], backgrounds=["BG"])
        self.assertEqual(registry.tally.outside_background, 1)
        self.assertEqual(registry.tally.registered, 3)
        self.assertEqual(registry.count("SP"), 2)

    def test_seeds_and_classes(self):
        _, registry = build(self.table, seeds=["SP"], others=["SO"], backgrounds=["BG"])
        self.assertEqual(registry.seeds, frozenset(["SP"]))
        self.assertEqual(registry.classes, frozenset(["SP", "SO"]))
        self.assertEqual(registry.permutable(False), ["SP"])
        self.assertEqual(registry.permutable(True), ["SO", "SP"])

    def test_unknown_class(self):
        _, registry = build(self.table, seeds=["SP"], others=["NOPE"], backgrounds=["BG"])
        self.assertEqual(registry.tally.unknown_classes, ["NOPE"])

    def test_no_seeds(self):
        with self.assertRaises(ConfigurationError):
            build(self.table, seeds=["NOPE"], others=["SO"])

    def test_implicit_background(self):
        segments, registry = build(self.table, seeds=["SP"], others=["SO"])
        self.assertTrue(segments.implicit)
        self.assertEqual(segments.segments, {0: S(70)})
        self.assertEqual(registry.count("SP"), 3)

    def test_originals(self):
        _, registry = build(self.table, seeds=["SP"], backgrounds=["BG"], flank_sec=1.0)
        named = NamedInterval(S(60), Interval(S(4), S(7)), "SP")
        self.assertIn(named, registry.originals)
        self.assertEqual(registry.originals[named].interval, Interval(S(65), S(66)))


class TestTransforms(unittest.TestCase):
    """Test point reductions and flanks."""

    def setUp(self):
        self.table = AnnotationTable()
        self.table.add("BG", 0, S(100))
        self.table.add("SP", S(1), S(2))
        self.table.add("SP", S(10), S(12), meta={"POS": 0.25})
        self.table.add("K", S(40), S(41))

    def test_midpoint(self):
        _, registry = build(self.table, seeds=["SP"], backgrounds=["BG"], midpoint=True)
        self.assertEqual(registry.events[0]["SP"], [Interval(S(1.5), S(1.5)), Interval(S(11), S(11))])

    def test_duplicates_collapsed(self):
        self.table.add("SP", S(0.5), S(2.5))
        _, registry = build(self.table, seeds=["SP"], backgrounds=["BG"], midpoint=True)
        self.assertEqual(registry.events[0]["SP"], [Interval(S(1.5), S(1.5)), Interval(S(11), S(11))])
        self.assertEqual(registry.tally.registered, 2)
        self.assertEqual(registry.tally.duplicates, 1)
        original = registry.originals[NamedInterval(0, Interval(S(1.5), S(1.5)), "SP")]
        self.assertEqual(original.interval, Interval(S(0.5), S(2.5)))

    def test_relative_position(self):
        _, registry = build(self.table, seeds=["SP"], backgrounds=["BG"], rel_position={"SP": "POS"})
        self.assertEqual(registry.events[0]["SP"], [Interval(S(10.5), S(10.5))])
        self.assertEqual(registry.tally.bad_position, 1)

    def test_seed_flank_clipped(self):
        _, registry = build(self.table, seeds=["SP"], others=["K"], backgrounds=["BG"], flank_sec=2.0)
        self.assertEqual(registry.events[0]["SP"], [Interval(0, S(4)), Interval(S(8), S(14))])
        self.assertEqual(registry.events[0]["K"], [Interval(S(40), S(41))])
        self.assertEqual(registry.flanks, {"SP": S(2)})

    def test_per_class_flank(self):
        _, registry = build(self.table, seeds=["SP"], others=["K"], backgrounds=["BG"],
                            flank_sec_annot={"K": 1.0})
        self.assertEqual(registry.events[0]["K"], [Interval(S(39), S(42))])
        self.assertEqual(registry.events[0]["SP"], [Interval(S(1), S(2)), Interval(S(10), S(12))])

    def test_flank_clipped_at_segment_end(self):
        self.table.add("K", S(99), S(100))
        _, registry = build(self.table, seeds=["SP"], others=["K"], backgrounds=["BG"],
                            flank_sec_annot={"K": 5.0})
        self.assertEqual(registry.events[0]["K"][-1], Interval(S(94), S(100)))


class TestChannelsAndFilters(unittest.TestCase):
    """Test channel-qualified ids, channel lists and metadata filters."""

    def setUp(self):
        self.table = AnnotationTable()
        self.table.add("SP", S(1), S(2), channel="C3", meta={"AMP": 5})
        self.table.add("SP", S(3), S(4), channel="C4", meta={"AMP": 50})
        self.table.add("SP", S(5), S(6), channel="C3")
        self.table.add("SO", S(1), S(2), channel="C3")

    def test_channel_qualified(self):
        _, registry = build(self.table, seeds=["SP"], others=["SO"])
        self.assertEqual(registry.seeds, frozenset(["SP_C3", "SP_C4"]))
        self.assertEqual(registry.name_channel["SP_C4"], ("SP", "C4"))
        self.assertEqual(registry.channels["SO_C3"], "C3")

    def test_pooled(self):
        _, registry = build(self.table, seeds=["SP"], others=["SO"], pool_channels=True)
        self.assertEqual(registry.seeds, frozenset(["SP"]))
        self.assertEqual(registry.name_channel["SP"], ("SP", "."))

    def test_pooled_subset(self):
        _, registry = build(self.table, seeds=["SP"], others=["SO"], pool_channels=True,
                            pool_channel_sets={"SO"})
        self.assertEqual(registry.classes, frozenset(["SP_C3", "SP_C4", "SO"]))

    def test_channel_include(self):
        _, registry = build(self.table, seeds=["SP"], others=["SO"], chs_inc={"SP": {"C3"}})
        self.assertEqual(registry.seeds, frozenset(["SP_C3"]))
        self.assertEqual(registry.tally.channel_excluded, 1)

    def test_channel_exclude(self):
        _, registry = build(self.table, seeds=["SP"], others=["SO"], chs_exc={"SP": {"C3"}})
        self.assertEqual(registry.seeds, frozenset(["SP_C4"]))
        self.assertEqual(registry.tally.channel_excluded, 2)

    def test_filters(self):
        _, registry = build(self.table, seeds=["SP"], others=["SO"], flt_lwr={"AMP": 10.0})
        self.assertEqual(registry.tally.filtered, 1)
        self.assertEqual(registry.tally.registered, 3)

    def test_non_numeric_meta_filtered(self):
        self.table.add("SP", S(7), S(8), meta={"AMP": "high"})
        _, registry = build(self.table, seeds=["SP"], others=["SO"], flt_upr={"AMP": 100.0})
        self.assertEqual(registry.tally.filtered, 1)

    def test_settings_follow_channel_ids(self):
        _, registry = build(self.table, seeds=["SP"], others=["SO"], shuffle_others=True,
                            fixed={"SO"}, align=[["SP", "SO"]])
        self.assertIn("SO_C3", registry.fixed)
        self.assertEqual(registry.permutable(True), ["SP_C3", "SP_C4"])
        self.assertIn("SO_C3", registry.alignment.group_of("SP_C3"))


class TestAlignmentGroups(unittest.TestCase):
    """Test AlignmentGroups partitions."""

    def test_partitions(self):
        groups = AlignmentGroups((frozenset(["A", "B"]),))
        self.assertEqual(groups.partitions(["A", "B", "C"]), [frozenset(["A", "B"]), frozenset(["C"])])

    def test_partition_restricted_to_names(self):
        groups = AlignmentGroups((frozenset(["A", "B"]),))
        self.assertEqual(groups.partitions(["B", "C"]), [frozenset(["B"]), frozenset(["C"])])

    def test_unaligned(self):
        groups = AlignmentGroups()
        self.assertFalse(groups.is_aligned("A"))
        self.assertEqual(groups.group_of("A"), frozenset(["A"]))


if __name__ == '__main__':
    unittest.main()
