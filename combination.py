"""
combination.py — StrucComb, the geometry-bearing twin of a CharTree

A StrucComb is built 1:1 over a CharTree:
  Single  : prototype (with adjacency-aware allocations), its view and the
            per-slot assigned lengths
  Complex : construction type, child combs and the gap slots between them

Lengths are counted in allocation units until layout assigns a unit scale;
after `assign`, every node knows its content length per axis and every
child its offsets, so `get_paths` can place strokes in work space.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Tuple, Union

import numpy as np

from algorithm import NORMAL_OFFSET, scale_correction, visual_center_length
from construct import CharTree, EmptyError
from glyph_types import (
    AXES,
    UNIT_BOX,
    AssignVal,
    Axis,
    AxisPair,
    CstKind,
    CstType,
    KeyPath,
    Place,
    WorkBox,
    WorkPoint,
    assert_assign_val,
    total_of,
)
from resolver import Adjacency, child_adjacencies, no_adjacency
from struc import StrucProto, StrucView

logger = logging.getLogger(__name__)

ProtoSource = Callable[[str], Optional[StrucProto]]


def _zero_offsets() -> AxisPair[List[AssignVal]]:
    return AxisPair([AssignVal(), AssignVal()], [AssignVal(), AssignVal()])


def _unit_vals(units: List[int], scale: float, min_val: float) -> List[AssignVal]:
    vals = [AssignVal(n * min_val, n * scale - n * min_val) for n in units]
    for av in vals:
        assert_assign_val(av)
    return vals


# ----------------------------
# Geometry output
# ----------------------------

@dataclass
class CompTree:
    name: str
    tp: CstType
    paths: List[KeyPath] = field(default_factory=list)
    comps: List["CompTree"] = field(default_factory=list)

    def all_paths(self) -> List[KeyPath]:
        return list(self.paths) + [p for c in self.comps for p in c.all_paths()]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "tp": self.tp.symbol(),
            "paths": [p.to_dict() for p in self.paths],
            "comps": [c.to_dict() for c in self.comps],
        }


# ----------------------------
# Variant payloads
# ----------------------------

@dataclass
class SingleData:
    proto: StrucProto
    view: StrucView
    assigns: AxisPair[List[AssignVal]] = field(default_factory=lambda: AxisPair([], []))

    def positions(self, axis: Axis) -> Dict[int, float]:
        """Allocation-grid index -> offset from the component start."""
        out = {0: 0.0}
        acc_i, acc = 0, 0.0
        for n, av in zip(self.proto.allocation_space().get(axis), self.assigns.get(axis)):
            acc_i += n
            acc += av.total()
            out[acc_i] = acc
        return out


@dataclass
class ComplexData:
    tp: CstType
    comps: List["StrucComb"]
    interval: AxisPair[int] = field(default_factory=lambda: AxisPair(1, 1))
    # Scale: one gap between each pair of children, along the scale axis.
    # Surround: per axis [start gap, end gap] between frame and secondary.
    intervals: List[AssignVal] = field(default_factory=list)
    side_gaps: AxisPair[List[AssignVal]] = field(default_factory=lambda: AxisPair([], []))


# ----------------------------
# StrucComb
# ----------------------------

class StrucComb:
    def __init__(self, name: str, cdata: Union[SingleData, ComplexData], adjacency: Optional[Adjacency] = None):
        self.name = name
        self.cdata = cdata
        self.adjacency: Adjacency = adjacency if adjacency is not None else no_adjacency()
        self.offsets: AxisPair[List[AssignVal]] = _zero_offsets()
        self.reduce_target: AxisPair[Optional[int]] = AxisPair(None, None)
        self.assign_len: AxisPair[float] = AxisPair(0.0, 0.0)
        self.min_val: AxisPair[float] = AxisPair(0.0, 0.0)
        self.history: Tuple[str, ...] = ()

    # ---- construction ----

    @classmethod
    def new_single(cls, name: str, proto: StrucProto, adjacency: Optional[Adjacency] = None) -> "StrucComb":
        proto = proto.copy()
        adjacency = adjacency if adjacency is not None else no_adjacency()
        proto.set_allocs_in_adjacency(adjacency)
        return cls(name, SingleData(proto, StrucView(proto)), adjacency)

    @classmethod
    def new_complex(
        cls, name: str, tp: CstType, comps: List["StrucComb"], adjacency: Optional[Adjacency] = None
    ) -> "StrucComb":
        return cls(name, ComplexData(tp, comps), adjacency)

    @classmethod
    def from_tree(cls, tree: CharTree, lookup: ProtoSource, adjacency: Optional[Adjacency] = None) -> "StrucComb":
        """Build over `tree`, fetching prototypes through `lookup`. Raises EmptyError for a missing one."""
        adjacency = adjacency if adjacency is not None else no_adjacency()
        if tree.tp.is_single():
            proto = lookup(tree.name)
            if proto is None:
                raise EmptyError(tree.name)
            return cls.new_single(tree.name, proto, adjacency)
        adjs = child_adjacencies(tree.tp, len(tree.children), adjacency)
        comps = [cls.from_tree(c, lookup, a) for c, a in zip(tree.children, adjs)]
        return cls.new_complex(tree.name, tree.tp, comps, adjacency)

    def replace_with(self, other: "StrucComb") -> None:
        """Take over another comb's content; offsets and adjacency stay."""
        self.history = self.history + (self.name,)
        self.name = other.name
        self.cdata = other.cdata
        for axis in AXES:
            if other.reduce_target.get(axis) is not None:
                self.reduce_target.set(axis, other.reduce_target.get(axis))

    # ---- shape ----

    def is_single(self) -> bool:
        return isinstance(self.cdata, SingleData)

    @property
    def tp(self) -> CstType:
        if isinstance(self.cdata, SingleData):
            return CstType.single()
        return self.cdata.tp

    @property
    def comps(self) -> List["StrucComb"]:
        return [] if isinstance(self.cdata, SingleData) else self.cdata.comps

    def get_char_box(self) -> WorkBox:
        if isinstance(self.cdata, SingleData) and self.cdata.proto.attrs.char_box is not None:
            return self.cdata.proto.attrs.char_box
        return UNIT_BOX

    def init_edges(self, interval: AxisPair[int]) -> AxisPair[int]:
        """
        Check every prototype is drawable, store the gap policy, widen frames
        whose opening is too small, return base lengths.
        """
        if isinstance(self.cdata, SingleData):
            if self.cdata.proto.is_empty():
                raise EmptyError(self.name)
        else:
            self.cdata.interval = interval.copy()
            for c in self.cdata.comps:
                c.init_edges(interval)
            if self.cdata.tp.kind is CstKind.SURROUND:
                for axis in AXES:
                    self._fit_opening(axis)
        return AxisPair.from_fn(self.get_bases_length)

    # ---- lengths in allocation units ----

    def get_bases_length(self, axis: Axis) -> int:
        cd = self.cdata
        if isinstance(cd, SingleData):
            return sum(cd.proto.allocation_space().get(axis))
        if cd.tp.kind is CstKind.SCALE:
            lens = [c.get_bases_length(axis) for c in cd.comps]
            if axis is cd.tp.axis:
                return sum(lens) + sum(self._scale_gaps())
            return max(lens) if lens else 0
        return self._surround_fit(axis)[0]

    def _scale_gaps(self) -> List[int]:
        cd = self.cdata
        axis = cd.tp.axis
        interval = cd.interval.get(axis)
        gaps = []
        for c1, c2 in zip(cd.comps, cd.comps[1:]):
            sharp = max(c1.edge_sharpness(axis, Place.END), c2.edge_sharpness(axis, Place.START))
            gaps.append(int(math.ceil(interval * sharp)))
        return gaps

    def _surround_gaps(self, axis: Axis) -> List[int]:
        place = self.cdata.tp.surround_place().get(axis)
        interval = self.cdata.interval.get(axis)
        return [
            interval if place is not Place.END else 0,
            interval if place is not Place.START else 0,
        ]

    def _opening(self, axis: Axis) -> Tuple[int, int]:
        """Grid lines of the frame's opening along `axis`."""
        primary = self.cdata.comps[0]
        view = primary.cdata.view
        k = view.space_size().get(axis)
        place = self.cdata.tp.surround_place().get(axis)
        lo, hi = 0, k
        if place is not Place.END:
            black = [i for i in range(0, k // 2 + 1) if view.line_is_black(axis, i)]
            lo = max(black) if black else 0
        if place is not Place.START:
            black = [i for i in range((k + 1) // 2, k + 1) if view.line_is_black(axis, i)]
            hi = min(black) if black else k
        return lo, max(lo, hi)

    def _surround_fit(self, axis: Axis) -> Tuple[int, Tuple[int, int]]:
        """
        Base length of a surround node and the opening used for the secondary.
        A Single frame whose opening is still too small counts the missing
        units on top of its own length.
        """
        primary, secondary = self.cdata.comps
        need = secondary.get_bases_length(axis) + sum(self._surround_gaps(axis))
        if not isinstance(primary.cdata, SingleData):
            p_len = primary.get_bases_length(axis)
            return max(p_len, need), (0, max(p_len, need))

        lo, hi = self._opening(axis)
        deficit = max(need - (hi - lo), 0)
        return primary.get_bases_length(axis) + deficit, (lo, hi + deficit)

    def _fit_opening(self, axis: Axis) -> None:
        primary, secondary = self.cdata.comps
        if not isinstance(primary.cdata, SingleData):
            return
        need = secondary.get_bases_length(axis) + sum(self._surround_gaps(axis))
        lo, hi = self._opening(axis)
        if need > hi - lo:
            self._widen_primary(axis, lo, hi, need - (hi - lo))

    def _widen_primary(self, axis: Axis, lo: int, hi: int, deficit: int) -> None:
        primary = self.cdata.comps[0]
        proto = primary.cdata.proto
        allocs = proto.allocation_values()
        line = allocs.get(axis)
        if not line:
            return
        cum = 0
        best = None
        for i, n in enumerate(line):
            if n > 0 and lo <= cum and cum + n <= hi and (best is None or n > line[best]):
                best = i
            cum += n
        if best is None:
            # no slot inside the opening; widen the first slot at or after lo
            cum = 0
            best = len(line) - 1
            for i, n in enumerate(line):
                if cum >= lo:
                    best = i
                    break
                cum += n
        line[best] += deficit
        proto.attrs.allocs = allocs
        primary.cdata.view = StrucView(proto)
        logger.debug("widen %s %s slot %d by %d", primary.name, axis.value, best, deficit)

    # ---- edges ----

    def edge_sharpness(self, axis: Axis, place: Place) -> float:
        cd = self.cdata
        if isinstance(cd, SingleData):
            return cd.view.edge_sharpness(axis, place)
        if cd.tp.kind is CstKind.SCALE and axis is cd.tp.axis:
            child = cd.comps[0] if place is Place.START else cd.comps[-1]
            return child.edge_sharpness(axis, place)
        return max(c.edge_sharpness(axis, place) for c in cd.comps)

    # ---- shrink ----

    def reduce_space(self, axis: Axis, check: bool = False) -> bool:
        cd = self.cdata
        if isinstance(cd, SingleData):
            ok = cd.proto.reduce(axis, check)
            if ok and not check:
                cd.view = StrucView(cd.proto)
        elif cd.tp.kind is CstKind.SCALE:
            ok = self._reduce_scale(axis, check)
        else:
            ok = self._reduce_surround(axis, check)

        if ok and not check:
            self.reduce_target.set(axis, self.get_bases_length(axis))
            logger.debug("reduce %s in %s -> %d", self.name, axis.value, self.get_bases_length(axis))
        return ok

    def _reduce_scale(self, axis: Axis, check: bool) -> bool:
        comps = self.cdata.comps
        if axis is self.cdata.tp.axis:
            order = sorted(comps, key=lambda c: -c.get_bases_length(axis))
            return any(c.reduce_space(axis, check) for c in order)
        longest = max(c.get_bases_length(axis) for c in comps)
        results = [c.reduce_space(axis, check) for c in comps if c.get_bases_length(axis) == longest]
        return any(results)

    def _reduce_surround(self, axis: Axis, check: bool) -> bool:
        primary, secondary = self.cdata.comps
        if secondary.reduce_space(axis, check):
            return True
        if check:
            return primary.reduce_space(axis, True)
        before = self.get_bases_length(axis)
        if not primary.reduce_space(axis):
            return False
        return self.get_bases_length(axis) < before

    # ---- assignment ----

    def assign(self, lengths: AxisPair[float], min_val: AxisPair[float]) -> None:
        """Hand out `lengths` (content size per axis) at this node's unit scale."""
        self.assign_len = AxisPair(lengths.h, lengths.v)
        self.min_val = AxisPair(min_val.h, min_val.v)
        cd = self.cdata
        if isinstance(cd, SingleData):
            space = cd.proto.allocation_space()
            for axis in AXES:
                units = space.get(axis)
                total = sum(units)
                scale = lengths.get(axis) / total if total else 0.0
                cd.assigns.set(axis, _unit_vals(units, scale, min_val.get(axis)))
            return
        if cd.tp.kind is CstKind.SCALE:
            self._assign_scale(lengths, min_val)
        else:
            self._assign_surround(lengths, min_val)

    def _scales(self, lengths: AxisPair[float]) -> AxisPair[float]:
        def scale(axis: Axis) -> float:
            base = self.get_bases_length(axis)
            return lengths.get(axis) / base if base else 0.0
        return AxisPair.from_fn(scale)

    def _assign_scale(self, lengths: AxisPair[float], min_val: AxisPair[float]) -> None:
        cd = self.cdata
        along = cd.tp.axis
        across = along.inverse()
        scales = self._scales(lengths)
        cd.intervals = _unit_vals(self._scale_gaps(), scales.get(along), min_val.get(along))

        for c in cd.comps:
            c_len = AxisPair.from_fn(lambda a: c.get_bases_length(a) * scales.get(a))
            leftover = max(lengths.get(across) - c_len.get(across), 0.0)
            c.offsets = _zero_offsets()
            c.offsets.set(across, [AssignVal(0.0, leftover / 2.0), AssignVal(0.0, leftover / 2.0)])
            c.assign(c_len, min_val)

    def _assign_surround(self, lengths: AxisPair[float], min_val: AxisPair[float]) -> None:
        cd = self.cdata
        primary, secondary = cd.comps
        scales = self._scales(lengths)

        p_len = AxisPair.from_fn(lambda a: primary.get_bases_length(a) * scales.get(a))
        primary.offsets = _zero_offsets()
        primary.assign(p_len, min_val)

        s_len = AxisPair.from_fn(lambda a: secondary.get_bases_length(a) * scales.get(a))
        secondary.offsets = _zero_offsets()
        for axis in AXES:
            scale = scales.get(axis)
            _, (lo, hi) = self._surround_fit(axis)
            if isinstance(primary.cdata, SingleData):
                pos = primary.cdata.positions(axis)
                start, end = pos.get(lo, 0.0), pos.get(hi, p_len.get(axis))
            else:
                start, end = lo * scale, hi * scale
            gaps = _unit_vals(self._surround_gaps(axis), scale, min_val.get(axis))
            cd.side_gaps.set(axis, gaps)
            start += gaps[0].total()
            end -= gaps[1].total()
            leftover = max(end - start - s_len.get(axis), 0.0)
            secondary.offsets.set(
                axis,
                [
                    AssignVal(0.0, start + leftover / 2.0),
                    AssignVal(0.0, max(lengths.get(axis) - end, 0.0) + leftover / 2.0),
                ],
            )
        secondary.assign(s_len, min_val)

    def min_length(self, axis: Axis) -> float:
        return self.get_bases_length(axis) * self.min_val.get(axis)

    def outer_length(self, axis: Axis) -> float:
        return self.assign_len.get(axis) + total_of(self.offsets.get(axis))

    def rescale(self, axis: Axis, length: float) -> None:
        """Change the content length along `axis`; bases are kept."""
        cd = self.cdata
        old = self.assign_len.get(axis)
        if isinstance(cd, SingleData):
            scale_correction(cd.assigns.get(axis), length)
        elif cd.tp.kind is CstKind.SCALE and axis is cd.tp.axis:
            parts: List[AssignVal] = []
            for i, c in enumerate(cd.comps):
                base = c.min_length(axis)
                parts.append(AssignVal(base, max(c.assign_len.get(axis) - base, 0.0)))
                if i < len(cd.intervals):
                    parts.append(cd.intervals[i])
            scale_correction(parts, length)
            for i, c in enumerate(cd.comps):
                c.rescale(axis, parts[2 * i].total())
        else:
            ratio = length / old if old > 0 else 0.0
            for c in cd.comps:
                for off in c.offsets.get(axis):
                    off.excess = max(off.total() * ratio - off.base, 0.0)
                c.rescale(axis, c.assign_len.get(axis) * ratio)
            for gap in cd.side_gaps.get(axis):
                gap.excess = max(gap.total() * ratio - gap.base, 0.0)
        self.assign_len.set(axis, length)

    # ---- output ----

    def get_paths(self, start: WorkPoint = (0.0, 0.0)) -> CompTree:
        origin = (start[0] + self.offsets.h[0].total(), start[1] + self.offsets.v[0].total())
        cd = self.cdata
        if isinstance(cd, SingleData):
            return CompTree(self.name, self.tp, cd.proto.get_paths(origin, cd.assigns), [])

        comps: List[CompTree] = []
        if cd.tp.kind is CstKind.SCALE:
            along = cd.tp.axis
            cur = list(origin)
            k = 0 if along is Axis.HORIZONTAL else 1
            for i, c in enumerate(cd.comps):
                comps.append(c.get_paths((cur[0], cur[1])))
                cur[k] += c.outer_length(along)
                if i < len(cd.intervals):
                    cur[k] += cd.intervals[i].total()
        else:
            comps = [c.get_paths(origin) for c in cd.comps]
        return CompTree(self.name, self.tp, [], comps)

    def axis_center(self, axis: Axis, stroke_width: float = 0.05) -> float:
        """
        Length weighted visual center along `axis` as a fraction of this
        node's content length. Dots weigh `stroke_width`.
        """
        tree = self.get_paths((0.0, 0.0))
        paths = tree.all_paths()
        total = self.assign_len.get(axis)
        pts = [p for path in paths for p in path.points()]
        if not pts or total <= NORMAL_OFFSET:
            return 0.5
        k = 0 if axis is Axis.HORIZONTAL else 1
        coords = np.asarray([p[k] for p in pts], dtype=np.float64)
        lo, hi = float(coords.min()), float(coords.max())
        frac = visual_center_length(paths, NORMAL_OFFSET, stroke_width)[k]
        origin = self.offsets.get(axis)[0].total()
        return (lo + frac * (hi - lo) - origin) / total

    def get_comp_infos(self) -> List[Dict[str, Any]]:
        """Flat per-node layout record, depth first."""
        cd = self.cdata
        info: Dict[str, Any] = {
            "name": self.name,
            "tp": self.tp.symbol(),
            "offsets": self.offsets.to_dict(lambda lst: [a.to_dict() for a in lst]),
            "length": self.assign_len.to_dict(),
        }
        if isinstance(cd, SingleData):
            info["allocs"] = cd.proto.allocation_values().to_dict()
            info["assigns"] = cd.assigns.to_dict(lambda lst: [a.to_dict() for a in lst])
            return [info]
        if cd.tp.kind is CstKind.SCALE:
            info["intervals"] = [a.to_dict() for a in cd.intervals]
        else:
            info["intervals"] = cd.side_gaps.to_dict(lambda lst: [a.to_dict() for a in lst])
        return [info] + [i for c in cd.comps for i in c.get_comp_infos()]
