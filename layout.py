"""
layout.py — per-axis space allocation

Three passes over a StrucComb:

  check_space   : pick a content length and a minimum-value tier per axis,
                  shrinking (reduce_alloc) or substituting (reduce_replace)
                  components until the tier fits; may swap axis priority once.
  assign_space  : apply the margins, the blank-edge visual correction and
                  hand the lengths down the tree.
  process_space : visual-centering corrections of the assigned lengths.

Failures raise construct.CstError subclasses.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Callable, List, Optional

from algorithm import NORMAL_OFFSET, center_correction
from combination import SingleData, StrucComb
from config import Config
from construct import AxisTransformError
from glyph_types import AXES, SIDES, AssignVal, Axis, AxisPair, CstKind, assert_axis_pair
from resolver import Adjacency

logger = logging.getLogger(__name__)

# Builds the comb for a substitute name under a given adjacency.
CombBuilder = Callable[[str, Adjacency], StrucComb]


@dataclass
class LayoutState:
    """Outcome of check_space: content length, margins and tier per axis."""
    assigns: AxisPair[float] = field(default_factory=lambda: AxisPair(0.0, 0.0))
    offsets: AxisPair[List[AssignVal]] = field(
        default_factory=lambda: AxisPair([AssignVal(), AssignVal()], [AssignVal(), AssignVal()])
    )
    levels: AxisPair[int] = field(default_factory=lambda: AxisPair(0, 0))
    bases: AxisPair[int] = field(default_factory=lambda: AxisPair(0, 0))

    def to_dict(self):
        return {
            "assigns": self.assigns.to_dict(),
            "offsets": self.offsets.to_dict(lambda lst: [a.to_dict() for a in lst]),
            "levels": self.levels.to_dict(),
            "bases": self.bases.to_dict(),
        }


# ----------------------------
# check_space
# ----------------------------

def check_space(comb: StrucComb, cfg: Config, build: Optional[CombBuilder] = None) -> LayoutState:
    """
    Solve content length and tier per axis.

    For each axis, horizontal first: length = min(zimian(base units),
    available); the tier is the first min_val whose base-unit total fits.
    A scale under the reduce trigger asks for one shrink step; a missing
    tier asks for a shrink or a substitution, then for the other axis to go
    first, and finally fails with AxisTransformError. Whenever a shrink
    succeeds while the other axis is already settled, that axis is solved
    again.
    """
    box = comb.get_char_box().size()
    zishen = AxisPair.from_fn(lambda a: cfg.size.get(a) * box.get(a))
    comb.init_edges(cfg.interval)

    state = LayoutState()
    check_state: List[Axis] = [Axis.HORIZONTAL, Axis.VERTICAL]
    first = True

    while check_state:
        axis = check_state[0]
        size = cfg.size.get(axis)
        zimian = cfg.zimian.get(axis)
        min_vals = cfg.min_val.get(axis)
        white = (size - zimian.max_val()) / 2.0

        base_len = comb.get_bases_length(axis)
        length = min(zimian.val_in(base_len), zishen.get(axis) - 2.0 * white)
        level = next((i for i, mv in enumerate(min_vals) if mv * base_len < length + NORMAL_OFFSET), None)

        if level is not None:
            scale = length / base_len if base_len else 0.0
            if base_len and scale < cfg.get_reduce_trigger(axis) and comb.reduce_space(axis):
                logger.debug("%s: scale %.4f under trigger in %s, reduced", comb.name, scale, axis.value)
                if len(check_state) == 1:
                    check_state.append(axis.inverse())
                continue

            if base_len == 0:
                length = 0.0
            state.assigns.set(axis, length)
            margin = max((zishen.get(axis) - length) / 2.0 - white, 0.0)
            state.offsets.set(axis, [AssignVal(white, margin), AssignVal(white, margin)])
            state.levels.set(axis, level)
            state.bases.set(axis, base_len)
        else:
            if comb.reduce_space(axis) or (build is not None and reduce_replace(comb, axis, cfg, build)):
                logger.debug("%s: no tier fits %d units in %s, shrunk", comb.name, base_len, axis.value)
                if len(check_state) == 1:
                    check_state.append(axis.inverse())
                continue
            if first:
                logger.debug("%s: %s first", comb.name, axis.inverse().value)
                check_state.reverse()
                first = False
                continue
            raise AxisTransformError(axis, length, base_len)

        first = False
        check_state.pop(0)

    assert_axis_pair(state.assigns)
    return state


# ----------------------------
# substitution
# ----------------------------

def reduce_replace(comb: StrucComb, axis: Axis, cfg: Config, build: CombBuilder) -> bool:
    """
    Swap a component for its configured narrower variant along `axis`.
    The replacement is shrunk until it is no longer than the comb it replaces
    and, where that comb remembers a target on the other axis, down to that
    target. Complex nodes try their children.
    """
    alt = cfg.reduce_replace_name(axis, comb.name)
    if alt is not None and alt != comb.name and alt not in comb.history:
        old_len = comb.get_bases_length(axis)
        new = build(alt, comb.adjacency)
        new.init_edges(cfg.interval)
        while new.get_bases_length(axis) > old_len and new.reduce_space(axis):
            pass

        inverse = axis.inverse()
        target = comb.reduce_target.get(inverse)
        if target is not None:
            while new.get_bases_length(inverse) > target and new.reduce_space(inverse):
                pass

        logger.debug("replace %s -> %s in %s", comb.name, alt, axis.value)
        comb.replace_with(new)
        return True

    comps = sorted(comb.comps, key=lambda c: -c.get_bases_length(axis))
    return any(reduce_replace(c, axis, cfg, build) for c in comps)


# ----------------------------
# assign_space
# ----------------------------

def assign_space(comb: StrucComb, cfg: Config, state: LayoutState) -> None:
    """
    Set the root margins from `state`, move up to visual_corr of margin into
    the content on each blank edge, then assign the tree.
    """
    min_val = AxisPair.from_fn(lambda a: cfg.min_val.get(a)[state.levels.get(a)])
    comb.offsets = state.offsets.copy()
    lengths = AxisPair(state.assigns.h, state.assigns.v)

    for axis in AXES:
        corr = cfg.get_visual_corr(axis)
        offsets = comb.offsets.get(axis)
        for i, place in enumerate(SIDES):
            sharp = comb.edge_sharpness(axis, place)
            vcorr = min((1.0 - sharp) * corr, offsets[i].excess)
            if vcorr <= 0.0:
                continue
            lengths.set(axis, lengths.get(axis) + vcorr)
            offsets[i].excess -= vcorr

    comb.assign(lengths, min_val)


# ----------------------------
# process_space
# ----------------------------

def process_space(comb: StrucComb, cfg: Config) -> None:
    """
    Single   : shift its slots toward the configured visual center.
    Scale    : children first, then center the [child, gap, child, ...]
               sequence along the axis and rescale the children.
    Surround : the secondary.
    """
    if isinstance(comb.cdata, SingleData):
        _process_single(comb, cfg)
        return

    cd = comb.cdata
    if cd.tp.kind is CstKind.SURROUND:
        process_space(cd.comps[1], cfg)
        return

    for c in cd.comps:
        process_space(c, cfg)

    axis = cd.tp.axis
    target, corr = cfg.center.get(axis)
    if corr == 0.0:
        return

    values: List[float] = []
    bases: List[float] = []
    for i, c in enumerate(cd.comps):
        values.append(c.assign_len.get(axis))
        bases.append(min(c.min_length(axis), c.assign_len.get(axis)))
        if i < len(cd.intervals):
            values.append(cd.intervals[i].total())
            bases.append(cd.intervals[i].base)

    center = comb.axis_center(axis, cfg.stroke_width)
    excess = center_correction(values, bases, center, target, corr)
    for i, c in enumerate(cd.comps):
        c.rescale(axis, bases[2 * i] + excess[2 * i])
        if i < len(cd.intervals):
            cd.intervals[i].excess = excess[2 * i + 1]


def _process_single(comb: StrucComb, cfg: Config) -> None:
    cd = comb.cdata
    for axis in AXES:
        target, corr = cfg.center.get(axis)
        if corr == 0.0:
            continue
        assigns = cd.assigns.get(axis)
        if not assigns:
            continue
        center = comb.axis_center(axis, cfg.stroke_width)
        excess = center_correction(
            [a.total() for a in assigns], [a.base for a in assigns], center, target, corr
        )
        for a, e in zip(assigns, excess):
            a.excess = e


# ----------------------------
# Whole pass
# ----------------------------

def layout_comb(comb: StrucComb, cfg: Config, build: Optional[CombBuilder] = None) -> LayoutState:
    state = check_space(comb, cfg, build)
    assign_space(comb, cfg, state)
    process_space(comb, cfg)
    return state

