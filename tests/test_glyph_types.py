import pytest

from glyph_types import (
    AssignVal,
    Axis,
    AxisPair,
    CstKind,
    CstType,
    KeyPath,
    KeyPoint,
    Place,
    WorkBox,
    assert_allocs,
)


def test_axis_and_place_inverse():
    assert Axis.HORIZONTAL.inverse() is Axis.VERTICAL
    assert Axis.VERTICAL.inverse() is Axis.HORIZONTAL
    assert Place.START.inverse() is Place.END
    assert Place.MIDDLE.inverse() is Place.MIDDLE


def test_place_from_index():
    assert Place.from_index(0, 2) is Place.START
    assert Place.from_index(1, 2) is Place.MIDDLE
    assert Place.from_index(2, 2) is Place.END


def test_axis_pair_access():
    p = AxisPair(1, 2)
    assert p.get(Axis.HORIZONTAL) == 1
    p.set(Axis.VERTICAL, 5)
    assert list(p) == [1, 5]
    assert p.map(lambda x: x * 2).to_dict() == {"h": 2, "v": 10}
    assert p.zip(AxisPair("a", "b")).h == (1, "a")


def test_axis_pair_splat_copies():
    p = AxisPair.splat([0])
    p.h.append(1)
    assert p.v == [0]


def test_axis_pair_from_value():
    assert AxisPair.from_value(0.5, float, 1.0).to_dict() == {"h": 0.5, "v": 0.5}
    assert AxisPair.from_value({"v": 2}, float, 1.0).to_dict() == {"h": 1.0, "v": 2.0}


def test_assign_val():
    a = AssignVal(0.1, 0.2)
    assert a.total() == pytest.approx(0.3)
    assert (a + AssignVal(1.0, 0.0)).base == pytest.approx(1.1)


def test_assert_allocs():
    assert_allocs([0, 1, 2])
    with pytest.raises(AssertionError):
        assert_allocs([1, -1])


@pytest.mark.parametrize(
    "symbol,kind",
    [
        ("□", CstKind.SINGLE),
        ("", CstKind.SINGLE),
        ("⿰", CstKind.SCALE),
        ("⿱", CstKind.SCALE),
        ("⿸", CstKind.SURROUND),
        ("⿴", CstKind.SURROUND),
    ],
)
def test_cst_type_from_symbol(symbol, kind):
    assert CstType.from_symbol(symbol).kind is kind


def test_cst_type_symbols():
    for s in ["⿰", "⿱", "⿸", "⿹", "⿺", "⿽", "⿵", "⿶", "⿷", "⿼", "⿴"]:
        assert CstType.from_symbol(s).symbol() == s
    # three-part scales read as the two-part ones
    assert CstType.from_symbol("⿲").symbol() == "⿰"
    assert CstType.from_symbol("⿳").symbol() == "⿱"
    assert CstType.from_symbol("⿹").surround_place().to_dict() == {"h": Place.END, "v": Place.START}


def test_cst_type_unknown_symbol():
    with pytest.raises(ValueError):
        CstType.from_symbol("X")


def test_key_point_forms():
    assert KeyPoint.from_dict([1, 2]).pos == (1, 2)
    kp = KeyPoint.from_dict({"pos": {"x": 3, "y": 4}, "weight": {"from": 0, "to": 1}})
    assert kp.pos == (3, 4)
    assert kp.weight.from_ == 0
    assert KeyPoint.from_dict(kp.to_dict()) == kp


def test_key_path_kpoints():
    path = KeyPath.from_dict(
        {"kpoints": [{"pos": {"x": 0, "y": 0}, "weight": {"from": 1, "pos": 0, "to": 1}}, {"pos": {"x": 2, "y": 0}}]}
    )
    assert path.points() == [(0, 0), (2, 0)]
    assert not path.hide
    data = path.to_dict()
    assert set(data) == {"kpoints", "hide"}
    assert data["kpoints"][1] == {"pos": {"x": 2, "y": 0}, "weight": {"from": 1, "pos": 0, "to": 1}}
    assert KeyPath.from_dict({"points": [[0, 0], [1, 0]]}).kpoints == []


def test_key_path_dot():
    assert KeyPath.from_points([(1, 1), (1, 1)]).is_dot()
    assert not KeyPath.from_points([(1, 1), (2, 1)]).is_dot()


def test_work_box():
    assert WorkBox.from_value("left").size().h == pytest.approx(0.5)
    assert WorkBox.from_value([0, 0, 1, 0.5]).size().v == pytest.approx(0.5)
    with pytest.raises(ValueError):
        WorkBox.from_value([0, 0, 0, 1])
