"""Tests for interval-set algebra in PyOverlap.core.intervals."""
import unittest

from PyOverlap.interfaces.annotation import Interval
from PyOverlap.core.intervals import covered_duration, excise, flatten, intersect, split_at, total_duration


def I(start, stop):
    return Interval(start, stop)


class TestFlatten(unittest.TestCase):
    """Test flatten() merging."""

    def test_merges_overlapping(self):
        self.assertEqual(flatten([I(3, 8), I(0, 5), I(10, 12)]), [I(0, 8), I(10, 12)])

    def test_touching_kept_apart_by_default(self):
        self.assertEqual(flatten([I(0, 5), I(5, 7)]), [I(0, 5), I(5, 7)])

    def test_touching_joined_on_request(self):
        self.assertEqual(flatten([I(0, 5), I(5, 7)], join_adjacent=True), [I(0, 7)])

    def test_contained_interval(self):
        self.assertEqual(flatten([I(0, 10), I(2, 3)]), [I(0, 10)])

    def test_empty(self):
        self.assertEqual(flatten([]), [])

    def test_idempotent(self):
        data = [I(0, 4), I(2, 9), I(9, 12), I(20, 21), I(20, 25), I(30, 30)]
        for join in (False, True):
            once = flatten(data, join)
            self.assertEqual(flatten(once, join), once)

    def test_covered_points_preserved(self):
        data = [I(0, 4), I(2, 9), I(15, 18)]
        covered = {p for i in data for p in range(i.start, i.stop)}
        merged = {p for i in flatten(data) for p in range(i.start, i.stop)}
        self.assertEqual(covered, merged)


class TestExcise(unittest.TestCase):
    """Test excise() hole removal."""

    def test_holes_inside(self):
        result = excise([I(0, 100)], [I(10, 20), I(50, 60)])
        self.assertEqual(result, [I(0, 10), I(20, 50), I(60, 100)])

    def test_hole_over_edges(self):
        self.assertEqual(excise([I(10, 20)], [I(0, 12), I(18, 30)]), [I(12, 18)])

    def test_hole_covers_target(self):
        self.assertEqual(excise([I(10, 20)], [I(0, 30)]), [])

    def test_untouched_targets_kept(self):
        self.assertEqual(excise([I(0, 5), I(5, 5)], [I(10, 20)]), [I(0, 5), I(5, 5)])

    def test_no_holes(self):
        self.assertEqual(excise([I(0, 5)], []), [I(0, 5)])

    def test_duration_partition(self):
        targets = [I(0, 100), I(150, 200)]
        holes = [I(10, 20), I(90, 160), I(199, 250)]
        kept = total_duration(excise(targets, holes))
        removed = total_duration(intersect(targets, holes))
        self.assertEqual(kept + removed, total_duration(targets))


class TestIntersect(unittest.TestCase):
    """Test intersect() and coverage helpers."""

    def test_intersect(self):
        self.assertEqual(intersect([I(0, 10), I(20, 30)], [I(5, 25)]), [I(5, 10), I(20, 25)])

    def test_disjoint(self):
        self.assertEqual(intersect([I(0, 10)], [I(10, 20)]), [])

    def test_total_duration(self):
        self.assertEqual(total_duration([I(0, 10), I(20, 25)]), 15)

    def test_covered_duration(self):
        self.assertEqual(covered_duration(I(0, 10), [I(2, 4), I(8, 20)]), 4)
        self.assertEqual(covered_duration(I(0, 10), [I(10, 20)]), 0)


class TestSplitAt(unittest.TestCase):
    """Test split_at() cutting."""

    def test_cuts_inside(self):
        self.assertEqual(split_at([I(0, 100), I(150, 200)], [50, 175, 120]),
                         [I(0, 50), I(50, 100), I(150, 175), I(175, 200)])

    def test_points_on_edges_ignored(self):
        self.assertEqual(split_at([I(0, 100)], [0, 100, 100]), [I(0, 100)])

    def test_duration_kept(self):
        pieces = split_at([I(0, 100), I(120, 130)], range(0, 140, 7))
        self.assertEqual(total_duration(pieces), 110)


class TestInterval(unittest.TestCase):
    """Test Interval helpers."""

    def test_overlaps_coincident_start(self):
        self.assertTrue(I(10, 10).overlaps(I(10, 20)))
        self.assertFalse(I(20, 20).overlaps(I(10, 20)))

    def test_overlaps_half_open(self):
        self.assertFalse(I(0, 10).overlaps(I(10, 20)))
        self.assertTrue(I(0, 11).overlaps(I(10, 20)))

    def test_mid(self):
        self.assertEqual(I(10, 20).mid, 15)
        self.assertEqual(I(7, 7).mid, 7)


if __name__ == '__main__':
    unittest.main()
