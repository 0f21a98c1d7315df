"""
resolver.py — name -> CharTree

Expands a character name through the construction table, applying:
- type substitution   (name inside a given (CstType, Place))
- place substitution  (name under a given adjacency pattern)
- surround remap      (keeps a surround's primary a frame, not a composite)
- adjacency propagation to children
"""

from __future__ import annotations

import copy
import logging
from typing import Dict, List, Optional, Tuple

from config import Config
from construct import CharTree, Component, CpAttrs, CstError, SurroundError
from glyph_types import AXES, Axis, AxisPair, CstKind, CstType, Place, SINGLE

logger = logging.getLogger(__name__)

Adjacency = AxisPair[List[bool]]
InType = Tuple[CstType, Place]


def no_adjacency() -> Adjacency:
    return AxisPair([False, False], [False, False])


def get_comp_attrs(name: str, table: Dict[str, CpAttrs], cfg: Config) -> Optional[CpAttrs]:
    """Supplement entries win over the table."""
    if name in cfg.supplement:
        return cfg.supplement[name]
    return table.get(name)


def get_char_tree(name: str, table: Dict[str, CpAttrs], cfg: Config) -> CharTree:
    return get_char_tree_in(name, (SINGLE, Place.START), no_adjacency(), table, cfg)


def get_char_tree_in(
    name: str,
    in_tp: InType,
    adjacency: Adjacency,
    table: Dict[str, CpAttrs],
    cfg: Config,
    visiting: Tuple[str, ...] = (),
) -> CharTree:
    if name in visiting:
        raise CstError(f"Recursive construction: {' -> '.join(visiting + (name,))}")
    name, attrs = get_char_attrs_in(name, in_tp, adjacency, table, cfg)
    return _tree_from_attrs(name, attrs, adjacency, table, cfg, visiting + (name,))


def get_char_attrs_in(
    name: str,
    in_tp: InType,
    adjacency: Adjacency,
    table: Dict[str, CpAttrs],
    cfg: Config,
) -> Tuple[str, CpAttrs]:
    """Substituted name and its (remapped) construction attributes."""
    replaced = cfg.check_name_replace(name, in_tp, adjacency)
    if replaced is not None:
        logger.debug("replace %s -> %s in %s", name, replaced, in_tp[0].symbol())
        name = replaced
    attrs = copy.deepcopy(get_comp_attrs(name, table, cfg) or CpAttrs.single())
    return name, surround_comb_remap(attrs, in_tp, adjacency, table, cfg)


def _component_attrs(
    comp: Component, in_tp: InType, adjacency: Adjacency, table: Dict[str, CpAttrs], cfg: Config
) -> CpAttrs:
    if isinstance(comp, CpAttrs):
        return copy.deepcopy(comp)
    return get_char_attrs_in(comp, in_tp, adjacency, table, cfg)[1]


def surround_comb_remap(
    attrs: CpAttrs,
    in_tp: InType,
    adjacency: Adjacency,
    table: Dict[str, CpAttrs],
    cfg: Config,
) -> CpAttrs:
    """
    Normalize a surround whose primary is itself composite.

    - primary is Scale(axis): the surround moves down onto the primary's
      component that carries the frame (last one if the frame sits at Start
      on that axis, first one if at End).
    - primary is the same surround: the two secondaries are stacked
      vertically under the inner frame.
    - anything else is left as is.
    """
    tp = attrs.tp
    if tp.kind is not CstKind.SURROUND or len(attrs.components) != 2:
        return attrs

    surround = tp.surround_place()
    primary = _component_attrs(attrs.components[0], (tp, Place.START), adjacency, table, cfg)

    if primary.tp.kind is CstKind.SINGLE:
        return attrs

    if primary.tp.kind is CstKind.SCALE:
        c_axis = primary.tp.axis
        place = surround.get(c_axis)
        if place is Place.MIDDLE:
            return _mismatch(attrs, primary)
        index = len(primary.components) - 1 if place is Place.START else 0
        secondary = attrs.components[1]
        primary.components[index] = CpAttrs(tp, [primary.components[index], secondary])
        return primary

    if primary.tp == tp and len(primary.components) == 2:
        frame, inner = primary.components
        outer = attrs.components[1]
        stacked = [outer, inner] if surround.v is Place.END else [inner, outer]
        return CpAttrs(tp, [frame, CpAttrs(CstType.scale(Axis.VERTICAL), stacked)])

    return _mismatch(attrs, primary)


def _mismatch(attrs: CpAttrs, primary: CpAttrs) -> CpAttrs:
    if primary.tp.kind is CstKind.SURROUND:
        comp = primary.comps_name()
    else:
        comp = primary.tp.symbol()
    logger.warning("cannot remap %s with primary %s", attrs.comps_name(), comp)
    return attrs


def _component_name(comp: Component) -> str:
    return comp if isinstance(comp, str) else comp.comps_name()


def _tree_from_attrs(
    name: str,
    attrs: CpAttrs,
    adjacency: Adjacency,
    table: Dict[str, CpAttrs],
    cfg: Config,
    visiting: Tuple[str, ...],
) -> CharTree:
    tp = attrs.tp
    if tp.kind is CstKind.SINGLE or not attrs.components:
        return CharTree.new_single(name)

    if tp.kind is CstKind.SURROUND:
        if len(attrs.components) != 2:
            raise SurroundError(tp, attrs.comps_name())
        _raise_if_strict(attrs, table, cfg, adjacency)

    places = child_in_places(tp, len(attrs.components))
    adjs = child_adjacencies(tp, len(attrs.components), adjacency)
    children = [
        _child_tree(comp, (tp, place), adj, table, cfg, visiting)
        for comp, place, adj in zip(attrs.components, places, adjs)
    ]
    return CharTree(name, tp, children)


def child_in_places(tp: CstType, count: int) -> List[Place]:
    """Place of each child inside its parent: sequence position, or primary/secondary."""
    if tp.kind is CstKind.SCALE:
        return [Place.from_index(i, count - 1) for i in range(count)]
    return [Place.START, Place.END][:count]


def child_adjacencies(tp: CstType, count: int, adjacency: Adjacency) -> List[Adjacency]:
    """
    Adjacency of each child. Scale children touch their neighbours along the
    axis; a surround's secondary touches the frame on every framed side; the
    primary keeps the parent's adjacency.
    """
    out: List[Adjacency] = []
    if tp.kind is CstKind.SCALE:
        end = count - 1
        for i in range(count):
            c_adj = AxisPair(list(adjacency.h), list(adjacency.v))
            sides = c_adj.get(tp.axis)
            if i != 0:
                sides[0] = True
            if i != end:
                sides[1] = True
            out.append(c_adj)
        return out

    surround = tp.surround_place()
    inner = AxisPair(list(adjacency.h), list(adjacency.v))
    for axis in AXES:
        place = surround.get(axis)
        sides = inner.get(axis)
        if place is not Place.END:
            sides[0] = True
        if place is not Place.START:
            sides[1] = True
    return [AxisPair(list(adjacency.h), list(adjacency.v)), inner][:count]


def _child_tree(
    comp: Component,
    in_tp: InType,
    adjacency: Adjacency,
    table: Dict[str, CpAttrs],
    cfg: Config,
    visiting: Tuple[str, ...],
) -> CharTree:
    if isinstance(comp, str):
        return get_char_tree_in(comp, in_tp, adjacency, table, cfg, visiting)
    attrs = surround_comb_remap(copy.deepcopy(comp), in_tp, adjacency, table, cfg)
    return _tree_from_attrs(_component_name(comp), attrs, adjacency, table, cfg, visiting)


def _raise_if_strict(attrs: CpAttrs, table: Dict[str, CpAttrs], cfg: Config, adjacency: Adjacency) -> None:
    """With strict_surround, a surround whose primary is still composite is an error."""
    if not cfg.strict_surround:
        return
    tp = attrs.tp
    primary = _component_attrs(attrs.components[0], (tp, Place.START), adjacency, table, cfg)
    if primary.tp.kind is not CstKind.SINGLE:
        raise SurroundError(tp, _component_name(attrs.components[0]))
