import pytest

from algorithm import (
    center_correction,
    intersect,
    scale_correction,
    split_intersect,
    visual_center,
    visual_center_length,
)
from glyph_types import AssignVal, KeyPath


def test_intersect_cross():
    hit = intersect((0, 0), (2, 0), (1, -1), (1, 1))
    assert hit is not None
    pos, t1, t2 = hit
    assert pos == pytest.approx((1.0, 0.0))
    assert t1 == pytest.approx(0.5)
    assert t2 == pytest.approx(0.5)


def test_intersect_parallel():
    assert intersect((0, 0), (2, 0), (0, 1), (2, 1)) is None


def test_intersect_outside():
    assert intersect((0, 0), (1, 0), (2, -1), (2, 1)) is None


def test_intersect_tolerance_clamps():
    hit = intersect((0, 0), (1, 0), (1.00005, -1), (1.00005, 1))
    assert hit is not None
    assert hit[1] == 1.0


def test_split_intersect_cross():
    paths = [KeyPath.from_points([(0, 1), (2, 1)]), KeyPath.from_points([(1, 0), (1, 2)])]
    split_intersect(paths, 0.0)
    assert paths[0].points() == [(0, 1), (1.0, 1.0), (2, 1)]
    assert paths[1].points() == [(1, 0), (1.0, 1.0), (1, 2)]


def test_split_intersect_min_len():
    paths = [KeyPath.from_points([(0, 1), (2, 1)]), KeyPath.from_points([(1, 0), (1, 2)])]
    split_intersect(paths, 2.0)
    assert len(paths[0].kpoints) == 2
    assert len(paths[1].kpoints) == 2


def test_split_intersect_t_junction():
    paths = [KeyPath.from_points([(0, 0), (2, 0)]), KeyPath.from_points([(1, 0), (1, 2)])]
    split_intersect(paths, 0.0)
    assert len(paths[0].kpoints) == 3
    # the stem ends on the bar; nothing to split there
    assert len(paths[1].kpoints) == 2


def test_visual_center_cross():
    paths = [KeyPath.from_points([(0, 1), (2, 1)]), KeyPath.from_points([(1, 0), (1, 2)])]
    assert visual_center(paths) == (0.5, 0.5)


def test_visual_center_weighted():
    paths = [
        KeyPath.from_points([(0, 0), (2, 0)]),
        KeyPath.from_points([(0, 2), (2, 2)]),
        KeyPath.from_points([(0, 1), (1, 1)]),
    ]
    x, y = visual_center(paths)
    assert x == pytest.approx(2.5 / 3 / 2)
    assert y == 0.5


def test_visual_center_hidden_path_only_bounds():
    paths = [KeyPath.from_points([(0, 0), (0, 2)]), KeyPath.from_points([(2, 0), (2, 2)], hide=True)]
    assert visual_center(paths) == (0.0, 0.5)


def test_visual_center_flat_axis():
    assert visual_center([KeyPath.from_points([(0, 0), (2, 0)])]) == (0.5, 0.5)


def test_visual_center_length():
    paths = [KeyPath.from_points([(0, 0), (2, 0)]), KeyPath.from_points([(0, 0), (0, 1)])]
    x, y = visual_center_length(paths, 0.0, 0.05)
    assert x == pytest.approx(1 / 3)
    assert y == pytest.approx(1 / 6)


def test_scale_correction_proportional():
    vals = [AssignVal(1, 1), AssignVal(1, 1)]
    assert scale_correction(vals, 6.0)
    assert [v.total() for v in vals] == pytest.approx([3.0, 3.0])
    assert [v.base for v in vals] == [1, 1]


def test_scale_correction_water_filling():
    vals = [AssignVal(1, 0), AssignVal(0, 3)]
    assert scale_correction(vals, 2.0)
    assert [v.excess for v in vals] == pytest.approx([0.0, 1.0])
    assert sum(v.total() for v in vals) == pytest.approx(2.0)


def test_scale_correction_below_bases():
    vals = [AssignVal(2, 1)]
    assert not scale_correction(vals, 1.0)
    assert vals[0].excess == 0.0


def test_center_correction_noop_at_edges():
    assert center_correction([1, 2], [0.5, 0.5], 0.0, 0.5, 1.0) == pytest.approx([0.5, 1.5])
    assert center_correction([1, 2], [0.5, 0.5], 0.3, 0.5, 0.0) == pytest.approx([0.5, 1.5])


def test_center_correction_moves_center():
    excess = center_correction([1, 1, 1, 1], [0.1] * 4, 0.5, 0.6, 1.0)
    assert excess == pytest.approx([1.1, 1.1, 0.7, 0.7])
    assert sum(excess) + 0.4 == pytest.approx(4.0)


def test_center_correction_keeps_bases():
    excess = center_correction([1, 1], [0.9, 0.9], 0.5, 0.9, 1.0)
    assert excess == pytest.approx([0.2, 0.0])
    assert all(e >= 0 for e in excess)
