"""Tests for circular shuffling in PyOverlap.core.shuffle."""
import unittest

import numpy as np

from PyOverlap.interfaces.annotation import Interval
from PyOverlap.core.background import SegmentMap
from PyOverlap.core.exceptions import ShuffleGeometryError
from PyOverlap.core.registry import AlignmentGroups
from PyOverlap.core.shuffle import circular_shuffle, draw_displacement, rotate, straddles

HALF = 500000000
WHOLE = 2 * HALF


class TestDisplacement(unittest.TestCase):
    """Test displacement draws."""

    def setUp(self):
        self.rng = np.random.default_rng(11)

    def test_straddles(self):
        self.assertTrue(straddles([Interval(90, 95)], 8, 100))
        self.assertFalse(straddles([Interval(90, 95)], 5, 100))
        self.assertFalse(straddles([Interval(90, 95)], 10, 100))

    def test_valid_draws(self):
        ints = [Interval(100, 200), Interval(700, 950)]
        for _ in range(200):
            p = draw_displacement(ints, 1000, self.rng)
            self.assertIsNotNone(p)
            self.assertTrue(0 <= p < 1000)
            self.assertFalse(straddles(ints, p, 1000))

    def test_bounded_draws(self):
        for _ in range(200):
            p = draw_displacement([Interval(500, 501)], 1000, self.rng, max_shift=10)
            self.assertTrue(p < 10 or p > 990, p)

    def test_no_valid_draw(self):
        ints = [Interval(0, HALF), Interval(HALF, WHOLE)]
        self.assertIsNone(draw_displacement(ints, WHOLE, self.rng, max_attempts=50))

    def test_rotate_wraps(self):
        self.assertEqual(rotate([Interval(10, 20), Interval(80, 90)], 20, 100),
                         [Interval(0, 10), Interval(30, 40)])


class TestCircularShuffle(unittest.TestCase):
    """Test circular_shuffle() over segments."""

    def setUp(self):
        self.segments = SegmentMap.from_regions([Interval(0, 1000), Interval(2000, 2500)])
        self.events = {
            0: {
                "SP": [Interval(10, 20), Interval(300, 310)],
                "SO": [Interval(30, 40)],
                "K": [Interval(500, 600)],
            },
            2000: {
                "SP": [Interval(0, 50)],
                "K": [Interval(100, 120)],
            },
        }
        self.rng = np.random.default_rng(5)

    def test_fixed_classes_untouched(self):
        for _ in range(20):
            out = circular_shuffle(self.events, self.segments, AlignmentGroups(), ["SP"], self.rng)
            self.assertEqual(out[0]["K"], self.events[0]["K"])
            self.assertEqual(out[0]["SO"], self.events[0]["SO"])
            self.assertEqual(out[2000]["K"], self.events[2000]["K"])

    def test_intervals_stay_in_segment(self):
        for _ in range(50):
            out = circular_shuffle(self.events, self.segments, AlignmentGroups(), ["SP", "SO", "K"], self.rng)
            for offset, annots in out.items():
                seg_len = self.segments.duration(offset)
                for name, ints in annots.items():
                    self.assertEqual(sorted(i.duration for i in ints),
                                     sorted(i.duration for i in self.events[offset][name]))
                    for i in ints:
                        self.assertTrue(0 <= i.start and i.stop <= seg_len)

    def test_aligned_classes_share_displacement(self):
        alignment = AlignmentGroups((frozenset(["SP", "SO"]),))
        for _ in range(50):
            out = circular_shuffle(self.events, self.segments, alignment, ["SO", "SP"], self.rng)
            d = (out[0]["SO"][0].start - 30) % 1000
            self.assertEqual({(i.start - d) % 1000 for i in out[0]["SP"]}, {10, 300})

    def test_observed_events_unchanged(self):
        before = {off: {k: list(v) for k, v in annots.items()} for off, annots in self.events.items()}
        circular_shuffle(self.events, self.segments, AlignmentGroups(), ["SP"], self.rng)
        self.assertEqual(self.events, before)

    def test_bounded_shift(self):
        for _ in range(50):
            out = circular_shuffle(self.events, self.segments, AlignmentGroups(), ["SO"], self.rng,
                                   max_shift=5)
            shift = (out[0]["SO"][0].start - 30) % 1000
            self.assertTrue(shift < 5 or shift > 995, shift)

    def test_geometry_error(self):
        segments = SegmentMap.from_regions([Interval(0, WHOLE)])
        events = {0: {"SP": [Interval(0, HALF), Interval(HALF, WHOLE)]}}
        with self.assertRaises(ShuffleGeometryError) as cm:
            circular_shuffle(events, segments, AlignmentGroups(), ["SP"], self.rng)
        self.assertEqual(cm.exception.name, "SP")


if __name__ == '__main__':
    unittest.main()
