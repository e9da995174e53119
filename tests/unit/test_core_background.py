"""Tests for background segments in PyOverlap.core.background."""
import unittest

from PyOverlap.interfaces.annotation import Interval
from PyOverlap.core.background import SegmentMap, build_segments
from PyOverlap.core.exceptions import ConfigurationError


class TestBuildSegments(unittest.TestCase):
    """Test segment construction from background and exclusions."""

    def test_implicit_segment(self):
        segmap = build_segments([], fallback_stop=100)
        self.assertTrue(segmap.implicit)
        self.assertEqual(segmap.segments, {0: 100})

    def test_no_background_and_no_annotations(self):
        with self.assertRaises(ConfigurationError):
            build_segments([])

    def test_regions(self):
        segmap = build_segments([Interval(60, 90), Interval(0, 50)])
        self.assertEqual(segmap.segments, {0: 50, 60: 30})
        self.assertEqual(segmap.breakpoints, (0, 50, 60, 90))
        self.assertEqual(segmap.total_duration, 80)

    def test_touching_regions_joined(self):
        segmap = build_segments([Interval(0, 50), Interval(50, 100)])
        self.assertEqual(segmap.segments, {0: 100})

    def test_cuts(self):
        segmap = build_segments([Interval(0, 50), Interval(50, 100)], cuts=[50])
        self.assertEqual(segmap.segments, {0: 50, 50: 50})
        self.assertEqual(segmap.breakpoints, (0, 50, 100))
        self.assertIsNone(segmap.locate(Interval(49, 51)))
        self.assertEqual(segmap.locate(Interval(50, 51)), 50)

    def test_cuts_before_edge_trimming(self):
        segmap = build_segments([Interval(0, 100)], edge_tp=10, cuts=[50])
        self.assertEqual(segmap.segments, {10: 30, 60: 30})

    def test_cuts_implicit_segment(self):
        segmap = build_segments([], fallback_stop=100, cuts=[0, 40, 100])
        self.assertEqual(segmap.segments, {0: 40, 40: 60})

    def test_exclusions(self):
        segmap = build_segments([Interval(0, 100)], [Interval(40, 60)])
        self.assertEqual(segmap.segments, {0: 40, 60: 40})

    def test_exclusions_remove_everything(self):
        with self.assertRaises(ConfigurationError):
            build_segments([Interval(0, 100)], [Interval(0, 100)])

    def test_edges(self):
        segmap = build_segments([Interval(0, 100), Interval(200, 210)], edge_tp=10)
        self.assertEqual(segmap.segments, {10: 80})

    def test_segments_disjoint_and_cover_background(self):
        bg = [Interval(0, 100), Interval(120, 300)]
        xbg = [Interval(10, 20), Interval(95, 130), Interval(250, 251)]
        segmap = build_segments(bg, xbg)
        regions = segmap.regions()
        for a, b in zip(regions, regions[1:]):
            self.assertLessEqual(a.stop, b.start)
        covered = {p for r in regions for p in range(r.start, r.stop)}
        expected = {p for r in bg for p in range(r.start, r.stop)} - \
            {p for r in xbg for p in range(r.start, r.stop)}
        self.assertEqual(covered, expected)


class TestLocate(unittest.TestCase):
    """Test placing intervals in segments."""

    def setUp(self):
        self.segmap = SegmentMap.from_regions([Interval(0, 50), Interval(60, 90)])

    def test_inside_first(self):
        self.assertEqual(self.segmap.locate(Interval(10, 20)), 0)

    def test_ending_on_segment_end(self):
        self.assertEqual(self.segmap.locate(Interval(40, 50)), 0)

    def test_inside_second(self):
        self.assertEqual(self.segmap.locate(Interval(60, 90)), 60)

    def test_spanning_breakpoint(self):
        self.assertIsNone(self.segmap.locate(Interval(49, 51)))

    def test_in_gap(self):
        self.assertIsNone(self.segmap.locate(Interval(55, 56)))

    def test_after_last(self):
        self.assertIsNone(self.segmap.locate(Interval(95, 96)))

    def test_point_at_origin(self):
        self.assertEqual(self.segmap.locate(Interval(0, 0)), 0)

    def test_point_on_segment_end(self):
        self.assertIsNone(self.segmap.locate(Interval(50, 50)))


if __name__ == '__main__':
    unittest.main()
