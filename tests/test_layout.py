import pytest

from combination import StrucComb
from config import Config
from construct import AxisTransformError, CharTree, CstTable, EmptyError
from glyph_types import Axis, KeyPath
from layout import check_space, layout_comb
from service import SimpleService
from struc import CompAttrs, StrucProto

SAMPLE = {
    "size": 1.0,
    "min_val": [0.1, 0.05],
    "zimian": [[2, 0.2], [5, 0.5], [8, 0.8]],
    "interval": 1,
}

KOU = StrucProto(
    [
        KeyPath.from_points([(0, 0), (0, 2)]),
        KeyPath.from_points([(0, 0), (2, 0), (2, 2)]),
        KeyPath.from_points([(0, 2), (2, 2)]),
    ]
)
SHI = StrucProto([KeyPath.from_points([(0, 1), (2, 1)]), KeyPath.from_points([(1, 0), (1, 2)])])
MU = StrucProto(
    [
        KeyPath.from_points([(0, 1), (4, 1)]),
        KeyPath.from_points([(2, 0), (2, 4)]),
        KeyPath.from_points([(2, 1), (0, 4)]),
        KeyPath.from_points([(2, 1), (4, 4)]),
    ]
)
CHANG = StrucProto([KeyPath.from_points([(0, 0), (3, 0)]), KeyPath.from_points([(0, 0), (0, 3)])])
GAN = StrucProto(
    [
        KeyPath.from_points([(0, 0), (2, 0)]),
        KeyPath.from_points([(0, 1), (2, 1)]),
        KeyPath.from_points([(1, 0), (1, 2)]),
    ]
)


def single(proto, name="x"):
    return StrucComb.from_tree(CharTree.new_single(name), {name: proto}.get)


def line(n, attrs=None):
    return StrucProto([KeyPath.from_points([(0, 0), (n, 0)])], CompAttrs.from_dict(attrs or {}))


def xs(tree):
    return [p[0] for path in tree.all_paths() for p in path.points()]


def ys(tree):
    return [p[1] for path in tree.all_paths() for p in path.points()]


def service(cfg=None):
    table = CstTable.from_dict(
        {
            "叶": ["⿰", ["口", "十"]],
            "困": ["⿴", ["口", "木"]],
            "厈": ["⿸", ["厂", "干"]],
        }
    )
    strucs = {"口": KOU, "十": SHI, "木": MU, "厂": CHANG, "干": GAN}
    return SimpleService(table, Config(cfg or dict(SAMPLE, visual_corr=0.1)), strucs)


def test_single_with_visual_correction():
    proto = StrucProto(
        [
            KeyPath.from_points([(0, 1), (1, 1), (2, 1), (3, 1)]),
            KeyPath.from_points([(0, 0), (0, 2)]),
        ]
    )
    comb = single(proto)
    cfg = Config(dict(SAMPLE, visual_corr=0.1))
    state = layout_comb(comb, cfg)

    assert state.assigns.h == pytest.approx(0.3)
    assert state.assigns.v == pytest.approx(0.2)
    assert state.levels.to_dict() == {"h": 0, "v": 0}

    # left edge is a wall, right edge and both v edges are open
    assert comb.assign_len.h == pytest.approx(0.4)
    assert comb.assign_len.v == pytest.approx(0.4)
    assert [a.total() for a in comb.cdata.assigns.h] == pytest.approx([0.4 / 3] * 3)
    assert [o.total() for o in comb.offsets.h] == pytest.approx([0.35, 0.25])
    assert [o.total() for o in comb.offsets.v] == pytest.approx([0.3, 0.3])

    tree = comb.get_paths()
    assert min(xs(tree)) == pytest.approx(0.35)
    assert max(xs(tree)) == pytest.approx(0.75)
    assert ys(tree)[:4] == pytest.approx([0.5] * 4)


def test_second_tier():
    comb = single(line(10))
    state = check_space(comb, Config(SAMPLE))
    assert state.assigns.h == pytest.approx(0.8)
    assert state.levels.h == 1
    assert state.bases.h == 10
    assert state.assigns.v == 0.0


def test_zero_axis_splits_box_evenly():
    state = check_space(single(line(10)), Config(SAMPLE))
    assert state.assigns.v == 0.0
    assert state.levels.v == 0
    assert [o.total() for o in state.offsets.v] == pytest.approx([0.5, 0.5])


def test_margin_scales_with_size():
    comb = single(line(4))
    state = check_space(comb, Config({"size": 2.0, "zimian": [[0, 0.9]]}))
    assert state.assigns.h == pytest.approx(0.9)
    assert [o.base for o in state.offsets.h] == pytest.approx([0.55, 0.55])
    assert [o.excess for o in state.offsets.h] == pytest.approx([0.0, 0.0])
    assert state.assigns.v == 0.0
    assert [o.total() for o in state.offsets.v] == pytest.approx([1.0, 1.0])


def test_reduce_trigger_shrinks():
    comb = single(line(10, {"reduce_alloc": {"h": [[8]], "v": []}}))
    state = check_space(comb, Config(dict(SAMPLE, reduce_trigger=0.09)))
    assert state.bases.h == 8
    assert state.levels.h == 0
    assert state.assigns.h == pytest.approx(0.8)
    assert comb.reduce_target.h == 8


def test_no_tier_shrinks():
    comb = single(line(10, {"reduce_alloc": {"h": [[8]], "v": []}}))
    state = check_space(comb, Config(dict(SAMPLE, min_val=[0.1])))
    assert state.bases.h == 8
    assert state.levels.h == 0


def test_axis_transform_error():
    square = StrucProto([KeyPath.from_points([(0, 0), (4, 0), (4, 4), (0, 4), (0, 0)])])
    with pytest.raises(AxisTransformError) as info:
        check_space(single(square), Config(dict(SAMPLE, min_val=[0.5])))
    assert info.value.axis is Axis.VERTICAL
    assert info.value.base_len == 4
    assert "0.400" in str(info.value)


def test_reduce_replace():
    svc = SimpleService(
        CstTable(),
        Config(dict(SAMPLE, min_val=[0.1], reduce_replace={"h": {"宽": "窄"}})),
        {"宽": line(12), "窄": line(6)},
    )
    comb, state = svc.layout_with_state(svc.resolve("宽"))
    assert comb.name == "窄"
    assert comb.history == ("宽",)
    assert state.bases.h == 6
    assert state.assigns.h == pytest.approx(0.6)


def test_missing_component():
    svc = service()
    del svc.strucs["十"]
    with pytest.raises(EmptyError) as info:
        svc.layout(svc.resolve("叶"))
    assert info.value.name == "十"


def test_empty_component():
    svc = service()
    svc.strucs["十"] = StrucProto()
    with pytest.raises(EmptyError):
        svc.layout(svc.resolve("叶"))


def test_scale_layout():
    svc = service()
    comb, state = svc.layout_with_state(svc.resolve("叶"))
    # 口 has a wall facing 十, 十 has none: one interval between them
    assert state.bases.to_dict() == {"h": 5, "v": 2}
    assert comb.assign_len.h == pytest.approx(0.6)

    kou, shi = comb.get_paths().comps
    assert min(xs(kou)) == pytest.approx(0.25)
    assert max(xs(kou)) == pytest.approx(0.49)
    assert min(xs(shi)) == pytest.approx(0.61)
    assert max(xs(shi)) == pytest.approx(0.85)
    assert all(0.3 - 1e-9 <= y <= 0.5 + 1e-9 for y in ys(kou) + ys(shi))


def test_surround_widens_frame():
    svc = service()
    comb = svc.layout(svc.resolve("困"))
    frame, inner = comb.comps
    assert frame.cdata.proto.allocation_values().to_dict() == {"h": [6], "v": [6]}

    kou, mu = comb.get_paths().comps
    assert min(xs(kou)) == pytest.approx(0.2)
    assert max(xs(kou)) == pytest.approx(0.8)
    assert min(xs(mu)) == pytest.approx(0.3)
    assert max(xs(mu)) == pytest.approx(0.7)
    assert min(ys(mu)) == pytest.approx(0.3)
    assert max(ys(mu)) == pytest.approx(0.7)
    # the stored prototype is untouched
    assert svc.strucs["口"].attrs.allocs is None


def test_frame_widened_once():
    svc = service()
    comb = StrucComb.from_tree(svc.resolve("困"), svc.lookup)
    frame = comb.comps[0]
    assert comb.get_bases_length(Axis.HORIZONTAL) == 6
    assert comb.get_bases_length(Axis.HORIZONTAL) == 6
    assert frame.cdata.proto.allocation_values().h == [2]

    assert comb.init_edges(Config(SAMPLE).interval).to_dict() == {"h": 6, "v": 6}
    assert frame.cdata.proto.allocation_values().to_dict() == {"h": [6], "v": [6]}
    comb.init_edges(Config(SAMPLE).interval)
    assert comb.get_bases_length(Axis.VERTICAL) == 6
    assert frame.cdata.proto.allocation_values().to_dict() == {"h": [6], "v": [6]}


def test_corner_surround():
    svc = service()
    comb = svc.layout(svc.resolve("厈"))
    frame, inner = comb.comps
    assert frame.cdata.proto.allocation_values().to_dict() == {"h": [3], "v": [3]}

    chang, gan = comb.get_paths().comps
    assert min(xs(chang)) == pytest.approx(0.35)
    assert max(xs(chang)) == pytest.approx(0.75)
    assert min(xs(gan)) == pytest.approx(0.35 + 0.4 / 3)
    assert max(xs(gan)) == pytest.approx(0.75)
    assert min(ys(gan)) == pytest.approx(0.35 + 0.4 / 3)


def test_center_correction_keeps_total():
    svc = service(dict(SAMPLE, visual_corr=0.1, center={"target": 0.5, "corr": 1.0}))
    comb = svc.layout(svc.resolve("叶"))
    kou, shi = comb.comps
    gap = comb.cdata.intervals[0]
    assert kou.assign_len.h + gap.total() + shi.assign_len.h == pytest.approx(comb.assign_len.h)
    assert gap.excess >= -1e-9
    for c in comb.comps:
        assert all(a.excess >= -1e-9 for a in c.cdata.assigns.h)


def test_comp_infos():
    svc = service()
    comb = svc.layout(svc.resolve("叶"))
    infos = comb.get_comp_infos()
    assert [i["name"] for i in infos] == ["叶", "口", "十"]
    assert infos[0]["tp"] == "⿰"
    assert len(infos[0]["intervals"]) == 1
    assert infos[2]["allocs"] == {"h": [1, 1], "v": [1, 1]}


def test_axis_center_weighs_length():
    proto = StrucProto([KeyPath.from_points([(0, 0), (1, 0)]), KeyPath.from_points([(1, 1), (3, 1)])])
    comb = single(proto)
    layout_comb(comb, Config(SAMPLE))
    # midpoints 0.5 and 2 weighted 1 and 2 over a span of 3
    assert comb.axis_center(Axis.HORIZONTAL) == pytest.approx(0.5)


def test_axis_center_dot_weighs_stroke_width():
    proto = StrucProto([KeyPath.from_points([(0, 0), (2, 0)]), KeyPath.from_points([(4, 1), (4, 1)])])
    comb = single(proto)
    layout_comb(comb, Config(SAMPLE))
    # the stroke is 0.2 long at x 0.1; the dot sits at x 0.4 of a 0.4 span
    assert comb.axis_center(Axis.HORIZONTAL, 0.05) == pytest.approx(0.4)
    assert comb.axis_center(Axis.HORIZONTAL, 2.0) == pytest.approx((0.02 + 0.8) / 2.2 / 0.4)
