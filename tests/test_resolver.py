import logging

import pytest

from config import Config
from construct import CstError, CstTable, SurroundError
from glyph_types import Axis, CstKind, CstType
from resolver import child_adjacencies, get_char_tree, no_adjacency


def names(tree):
    return [c.name for c in tree.children]


def test_single_and_missing():
    table = CstTable.from_dict({"口": "□"})
    assert get_char_tree("口", table, Config()).tp.kind is CstKind.SINGLE
    assert get_char_tree("未", table, Config()).children == []


def test_surround_moves_onto_scale_primary():
    table = CstTable.from_dict({"岸": ["⿸", ["屵", "干"]], "屵": ["⿱", ["山", "厂"]]})
    tree = get_char_tree("岸", table, Config())
    assert tree.tp == CstType.scale(Axis.VERTICAL)
    assert names(tree) == ["山", "⿸(厂+干)"]
    assert names(tree.children[1]) == ["厂", "干"]


def test_same_surround_stacks_secondaries():
    table = CstTable.from_dict({"魔": ["⿸", ["麻", "鬼"]], "麻": ["⿸", ["广", "林"]]})
    tree = get_char_tree("魔", table, Config())
    assert tree.tp.symbol() == "⿸"
    assert names(tree) == ["广", "⿱(林+鬼)"]
    assert names(tree.children[1]) == ["林", "鬼"]


def test_child_adjacencies_scale():
    adjs = child_adjacencies(CstType.scale(Axis.HORIZONTAL), 3, no_adjacency())
    assert [a.h for a in adjs] == [[False, True], [True, True], [True, False]]
    assert all(a.v == [False, False] for a in adjs)


def test_child_adjacencies_surround():
    primary, inner = child_adjacencies(CstType.from_symbol("⿸"), 2, no_adjacency())
    assert primary.to_dict() == {"h": [False, False], "v": [False, False]}
    assert inner.to_dict() == {"h": [True, False], "v": [True, False]}
    _, enclosed = child_adjacencies(CstType.from_symbol("⿴"), 2, no_adjacency())
    assert enclosed.to_dict() == {"h": [True, True], "v": [True, True]}


def test_type_replace_in_children():
    cfg = Config({"type_replace": {"⿰": {"Start": {"木": "木字旁"}}}})
    table = CstTable.from_dict({"林": ["⿰", ["木", "木"]]})
    assert names(get_char_tree("林", table, cfg)) == ["木字旁", "木"]


def test_place_replace_in_children():
    cfg = Config({"place_replace": {"口": [["x x o x", "口底"]]}})
    table = CstTable.from_dict({"古": ["⿱", ["十", "口"]]})
    assert names(get_char_tree("古", table, cfg)) == ["十", "口底"]


def test_supplement_wins():
    cfg = Config({"supplement": {"叶": ["⿱", ["十", "口"]]}})
    table = CstTable.from_dict({"叶": ["⿰", ["口", "十"]]})
    assert get_char_tree("叶", table, cfg).tp.symbol() == "⿱"


def test_surround_mismatch(caplog):
    table = CstTable.from_dict({"X": ["⿵", ["Y", "乂"]], "Y": ["⿰", ["亻", "亻"]]})
    with caplog.at_level(logging.WARNING):
        tree = get_char_tree("X", table, Config())
    assert tree.tp.symbol() == "⿵"
    assert names(tree) == ["Y", "乂"]
    assert "cannot remap" in caplog.text

    with pytest.raises(SurroundError):
        get_char_tree("X", table, Config({"strict_surround": True}))


def test_recursive_table():
    table = CstTable.from_dict({"a": ["⿰", ["b", "x"]], "b": ["⿰", ["a", "y"]]})
    with pytest.raises(CstError, match="Recursive construction"):
        get_char_tree("a", table, Config())
