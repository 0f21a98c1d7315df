"""
struc.py — stored glyph prototypes and their ink-occupancy views

StrucProto
  Key paths in integer allocation-index space plus a typed attribute record
  (allocations, adjacency, in-place overrides, char box, reduce fallbacks).

StrucView
  Grid of direction sets derived from a prototype. Rebuilt whenever the
  allocations change; used to tell whether an edge of the component is
  "sharp" (touches ink facing that axis) or blank.
"""

from __future__ import annotations

import copy
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Tuple, Union

from config import place_match
from glyph_types import (
    AXES,
    AssignVal,
    Axis,
    AxisPair,
    KeyPath,
    KeyPoint,
    Place,
    WorkBox,
    WorkPoint,
    assert_allocs,
)

logger = logging.getLogger(__name__)


# ----------------------------
# Attribute record
# ----------------------------

InPlaceRule = Tuple[str, AxisPair[List[int]]]


def _int_list(value: Any) -> List[int]:
    if not isinstance(value, list):
        raise ValueError(f"expected a list of ints, got {value!r}")
    out = [int(n) for n in value]
    assert_allocs(out)
    return out


def _bool_pair(value: Any) -> List[bool]:
    if not isinstance(value, list) or len(value) != 2:
        raise ValueError(f"expected [start, end] booleans, got {value!r}")
    return [bool(value[0]), bool(value[1])]


def _hv(value: Any, parse: Callable[[Any], Any]) -> AxisPair:
    if not isinstance(value, dict) or "h" not in value or "v" not in value:
        raise ValueError(f"expected an object with h and v, got {value!r}")
    return AxisPair(parse(value["h"]), parse(value["v"]))


def _opt_int(value: Any) -> Optional[int]:
    return None if value is None else int(value)


def _in_place(value: Any) -> List[InPlaceRule]:
    rules: List[InPlaceRule] = []
    for item in value:
        rule, allocs = item
        rules.append((str(rule), _hv(allocs, _int_list)))
    return rules


# attribute key -> (field name, parser, serializer)
_ATTR_FIELDS: Dict[str, Tuple[str, Callable[[Any], Any], Callable[[Any], Any]]] = {
    "allocs": ("allocs", lambda v: _hv(v, _int_list), lambda p: p.to_dict()),
    "adjacencies": ("adjacencies", lambda v: _hv(v, _bool_pair), lambda p: p.to_dict()),
    "in_place": (
        "in_place",
        _in_place,
        lambda rules: [[r, a.to_dict()] for r, a in rules],
    ),
    "char_box": ("char_box", WorkBox.from_value, lambda b: b.to_list()),
    "reduce_alloc": (
        "reduce_alloc",
        lambda v: _hv(v, lambda lst: [_int_list(x) for x in lst]),
        lambda p: p.to_dict(),
    ),
    "reduce_target": ("reduce_target", lambda v: _hv(v, _opt_int), lambda p: p.to_dict()),
    "fixed_Alloc": ("fixed_alloc", lambda v: _hv(v, _int_list), lambda p: p.to_dict()),
}


@dataclass
class CompAttrs:
    """
    Typed view of a prototype's attribute bag. Keys that fail to parse are
    logged and treated as absent; unknown keys are ignored.
    """
    allocs: Optional[AxisPair[List[int]]] = None
    adjacencies: Optional[AxisPair[List[bool]]] = None
    in_place: Optional[List[InPlaceRule]] = None
    char_box: Optional[WorkBox] = None
    reduce_alloc: Optional[AxisPair[List[List[int]]]] = None
    reduce_target: Optional[AxisPair[Optional[int]]] = None
    fixed_alloc: Optional[AxisPair[List[int]]] = None

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> "CompAttrs":
        attrs = cls()
        for key, value in (data or {}).items():
            spec = _ATTR_FIELDS.get(key)
            if spec is None:
                continue
            name, parse, _ = spec
            try:
                setattr(attrs, name, parse(value))
            except (ValueError, TypeError, KeyError, AssertionError) as e:
                logger.warning("attribute %s ignored: %s", key, e)
        return attrs

    def to_dict(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {}
        for key, (name, _, dump) in _ATTR_FIELDS.items():
            value = getattr(self, name)
            if value is not None:
                out[key] = dump(value)
        return out


# ----------------------------
# Prototype
# ----------------------------

@dataclass
class StrucProto:
    paths: List[KeyPath] = field(default_factory=list)
    attrs: CompAttrs = field(default_factory=CompAttrs)

    # ---- serialization ----

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "StrucProto":
        paths = [KeyPath.from_dict(p) for p in data.get("paths", [])]
        return cls(paths, CompAttrs.from_dict(data.get("attrs")))

    def to_dict(self) -> Dict[str, Any]:
        return {"paths": [p.to_dict() for p in self.paths], "attrs": self.attrs.to_dict()}

    def copy(self) -> "StrucProto":
        return copy.deepcopy(self)

    def is_empty(self) -> bool:
        return not any(p.kpoints for p in self.paths)

    # ---- index space ----

    def values(self) -> AxisPair[List[int]]:
        """Sorted distinct coordinates per axis."""
        xs = sorted({int(kp.pos[0]) for p in self.paths for kp in p.kpoints})
        ys = sorted({int(kp.pos[1]) for p in self.paths for kp in p.kpoints})
        return AxisPair(xs, ys)

    def values_map(self) -> AxisPair[Dict[int, int]]:
        """
        Coordinate -> cumulative allocation index. With stored allocations the
        first coordinate maps to 0 and each next adds its weight; otherwise the
        raw distance from the first coordinate is used.
        """
        values = self.values()
        allocs = self.attrs.allocs

        def build(axis: Axis) -> Dict[int, int]:
            vals = values.get(axis)
            if not vals:
                return {}
            if allocs is not None:
                out = {vals[0]: 0}
                acc = 0
                for v, n in zip(vals[1:], allocs.get(axis)):
                    acc += n
                    out[v] = acc
                return out
            return {v: v - vals[0] for v in vals}

        return AxisPair.from_fn(build)

    def value_index_in_axis(self, vals: List[int], axis: Axis) -> List[int]:
        """Positions of `vals` in the sorted distinct coordinates of `axis`."""
        line = self.values().get(axis)
        return [line.index(v) for v in vals if v in line]

    def allocation_values(self) -> AxisPair[List[int]]:
        """Stored allocations, or consecutive coordinate differences."""
        if self.attrs.allocs is not None:
            return self.attrs.allocs.copy()
        values = self.values()
        return values.map(lambda vals: [b - a for a, b in zip(vals, vals[1:])])

    def allocation_space(self) -> AxisPair[List[int]]:
        """Allocations with the virtual (zero) slots dropped."""
        return self.allocation_values().map(lambda lst: [n for n in lst if n != 0])

    def allocation_size(self) -> AxisPair[int]:
        return self.allocation_values().map(sum)

    def set_allocs_in_adjacency(self, adjacency: AxisPair[List[bool]]) -> None:
        """
        Clamp allocations by every in_place rule matching `adjacency`,
        then store the result along with the adjacency itself. An axis that
        got clamped remembers its new length as reduce_target.
        """
        allocs = self.allocation_values()
        if self.attrs.in_place:
            clamped = AxisPair(False, False)
            for rule, limits in self.attrs.in_place:
                if not place_match(rule, adjacency):
                    continue
                for axis in AXES:
                    cur = allocs.get(axis)
                    for i, (val, exp) in enumerate(zip(cur, limits.get(axis))):
                        if exp < val:
                            cur[i] = exp
                            clamped.set(axis, True)
            if clamped.h or clamped.v:
                target = self.attrs.reduce_target or AxisPair(None, None)
                for axis in AXES:
                    if clamped.get(axis):
                        target.set(axis, sum(allocs.get(axis)))
                self.attrs.reduce_target = target

        self.attrs.allocs = allocs
        self.attrs.adjacencies = AxisPair(list(adjacency.h), list(adjacency.v))

    def reduce(self, axis: Axis, check: bool = False) -> bool:
        """
        Shrink one step along `axis` using the first reduce_alloc vector that
        still has a smaller weight somewhere. Indices listed in fixed_Alloc are
        left alone. With `check`, only report whether a step is possible.
        """
        if self.attrs.reduce_alloc is None:
            return False

        allocs = self.allocation_values().get(axis)
        fixed = self.attrs.fixed_alloc.get(axis) if self.attrs.fixed_alloc else []
        ok = False
        for rallocs in self.attrs.reduce_alloc.get(axis):
            for i, (r, cur) in enumerate(zip(rallocs, allocs)):
                if i in fixed or r >= cur:
                    continue
                ok = True
                if check:
                    break
                allocs[i] = cur - 1
            if ok:
                break

        if ok and not check:
            full = self.allocation_values()
            full.set(axis, allocs)
            self.attrs.allocs = full
        return ok

    # ---- work space ----

    def get_paths(self, start: WorkPoint, assigns: AxisPair[List[AssignVal]]) -> List[KeyPath]:
        """
        Map the index-space paths into work space: coordinate -> allocation
        index -> cumulative assigned length, offset by `start`.
        """
        to_alloc = self.values_map()
        space = self.allocation_space()

        def build(axis: Axis) -> Dict[int, float]:
            origin = start[0] if axis is Axis.HORIZONTAL else start[1]
            out = {0: origin}
            acc_i = 0
            acc = origin
            for n, av in zip(space.get(axis), assigns.get(axis)):
                acc_i += n
                acc += av.total()
                out[acc_i] = acc
            return out

        to_work = AxisPair.from_fn(build)

        def conv(axis: Axis, v: float) -> float:
            idx = to_alloc.get(axis)[int(v)]
            return to_work.get(axis)[idx]

        out: List[KeyPath] = []
        for path in self.paths:
            kps = [
                KeyPoint((conv(Axis.HORIZONTAL, kp.pos[0]), conv(Axis.VERTICAL, kp.pos[1])), copy.copy(kp.weight))
                for kp in path.kpoints
            ]
            out.append(KeyPath(kps, path.hide))
        return out

    # ---- measurements ----

    def visual_weight(self) -> float:
        """Fraction of grid intersections touched by visible strokes."""
        size = self.allocation_space().map(sum)
        cells = (size.h + 1) * (size.v + 1)
        touched = set()
        for path in self.paths:
            if path.hide:
                continue
            pts = [(int(x), int(y)) for x, y in path.points()]
            if len(pts) == 1:
                touched.add(pts[0])
            for (x0, y0), (x1, y1) in zip(pts, pts[1:]):
                touched.update(_grid_points(x0, y0, x1, y1))
        return len(touched) / cells

    def line_length(self, scale: AxisPair[float]) -> float:
        """Total length of visible strokes with each axis scaled by `scale`."""
        mapping = self.values_map()
        total = 0.0
        for path in self.paths:
            if path.hide:
                continue
            pts = [
                (mapping.h[int(x)] * scale.h, mapping.v[int(y)] * scale.v)
                for x, y in path.points()
            ]
            for (x0, y0), (x1, y1) in zip(pts, pts[1:]):
                total += ((x1 - x0) ** 2 + (y1 - y0) ** 2) ** 0.5
        return total


def _grid_points(x0: int, y0: int, x1: int, y1: int) -> List[Tuple[int, int]]:
    """Integer points a segment passes through (sampled per step on the longer axis)."""
    steps = max(abs(x1 - x0), abs(y1 - y0))
    if steps == 0:
        return [(x0, y0)]
    out = []
    for k in range(steps + 1):
        t = k / steps
        x = x0 + (x1 - x0) * t
        y = y0 + (y1 - y0) * t
        if abs(x - round(x)) < 1e-9 and abs(y - round(y)) < 1e-9:
            out.append((int(round(x)), int(round(y))))
    return out


# ----------------------------
# View
# ----------------------------

class Direction(str, Enum):
    NONE = "None"
    LEFT = "Left"
    RIGHT = "Right"
    ABOVE = "Above"
    BELOW = "Below"
    LEFT_ABOVE = "LeftAbove"
    LEFT_BELOW = "LeftBelow"
    RIGHT_ABOVE = "RightAbove"
    RIGHT_BELOW = "RightBelow"
    HORIZONTAL = "Horizontal"
    VERTICAL = "Vertical"
    DIAGONAL = "Diagonal"

    def is_black(self, axis: Axis) -> bool:
        """True when the stroke stands across `axis` (a wall facing that axis)."""
        if axis is Axis.HORIZONTAL:
            return self in (Direction.ABOVE, Direction.BELOW, Direction.VERTICAL)
        return self in (Direction.LEFT, Direction.RIGHT, Direction.HORIZONTAL)

    @staticmethod
    def between(src: Tuple[int, int], dst: Tuple[int, int]) -> Optional["Direction"]:
        dx = dst[0] - src[0]
        dy = dst[1] - src[1]
        if dx == 0 and dy == 0:
            return None
        if dx == 0:
            return Direction.BELOW if dy > 0 else Direction.ABOVE
        if dy == 0:
            return Direction.RIGHT if dx > 0 else Direction.LEFT
        if dx < 0:
            return Direction.LEFT_BELOW if dy > 0 else Direction.LEFT_ABOVE
        return Direction.RIGHT_BELOW if dy > 0 else Direction.RIGHT_ABOVE


@dataclass(frozen=True)
class DiagonalSide:
    """Cell on the boundary row/column of a diagonal stroke's span."""
    src: Tuple[int, int]
    dst: Tuple[int, int]
    this: Tuple[int, int]

    def is_black(self, axis: Axis) -> bool:
        return False


Cell = List[Union[Direction, DiagonalSide]]


class SharpnessModel(str, Enum):
    ZERO_ONE = "ZeroOne"


class StrucView:
    """
    view[y][x] holds the directions of the strokes leaving grid point (x, y),
    plus fill markers for the cells a stroke passes over. Coordinates are
    allocation indices (values_map), so zero-weight slots collapse.
    """

    def __init__(self, proto: StrucProto):
        mapping = proto.values_map()
        cols = (max(mapping.h.values()) + 1) if mapping.h else 0
        rows = (max(mapping.v.values()) + 1) if mapping.v else 0
        self.view: List[List[Cell]] = [[[] for _ in range(cols)] for _ in range(rows)]

        def at(kp: KeyPoint) -> Tuple[int, int]:
            return mapping.h[int(kp.pos[0])], mapping.v[int(kp.pos[1])]

        for path in proto.paths:
            if not path.kpoints:
                continue
            if path.is_dot():
                x, y = at(path.kpoints[0])
                self.view[y][x].append(Direction.NONE)
                continue

            kps = path.kpoints
            for i, kp in enumerate(kps):
                here = at(kp)
                # previous side
                if i > 0 and kp.weight.from_ + kps[i - 1].weight.to != 0:
                    d = Direction.between(here, at(kps[i - 1]))
                    if d is not None:
                        self.view[here[1]][here[0]].append(d)
                # next side, also fills the cells passed over
                if i + 1 < len(kps) and kp.weight.to + kps[i + 1].weight.from_ != 0:
                    there = at(kps[i + 1])
                    d = Direction.between(here, there)
                    if d is not None:
                        self.view[here[1]][here[0]].append(d)
                        self._fill(here, there, d)

    def _fill(self, src: Tuple[int, int], dst: Tuple[int, int], d: Direction) -> None:
        x1, x2 = min(src[0], dst[0]), max(src[0], dst[0])
        y1, y2 = min(src[1], dst[1]), max(src[1], dst[1])
        if d in (Direction.LEFT, Direction.RIGHT):
            for x in range(x1 + 1, x2):
                self.view[y1][x].append(Direction.HORIZONTAL)
        elif d in (Direction.ABOVE, Direction.BELOW):
            for y in range(y1 + 1, y2):
                self.view[y][x1].append(Direction.VERTICAL)
        else:
            for y in range(y1 + 1, y2):
                for x in range(x1 + 1, x2):
                    self.view[y][x].append(Direction.DIAGONAL)
            for x in range(x1, x2):
                self.view[y1][x].append(DiagonalSide(src, dst, (x, y1)))
                self.view[y2][x].append(DiagonalSide(src, dst, (x, y2)))
            for y in range(y1, y2):
                self.view[y][x1].append(DiagonalSide(src, dst, (x1, y)))
                self.view[y][x2].append(DiagonalSide(src, dst, (x2, y)))

    def space_size(self) -> AxisPair[int]:
        rows = len(self.view)
        cols = len(self.view[0]) if rows else 0
        return AxisPair(max(cols - 1, 0), max(rows - 1, 0))

    def read_edge(self, axis: Axis, place: Place) -> List[Cell]:
        """Cells of the outer column (axis h) or row (axis v) on `place`."""
        size = self.space_size()
        if not self.view:
            return []
        if axis is Axis.HORIZONTAL:
            x = 0 if place is Place.START else size.h
            return [row[x] for row in self.view]
        y = 0 if place is Place.START else size.v
        return list(self.view[y])

    def line_is_black(self, axis: Axis, index: int) -> bool:
        """Any stroke standing across `axis` on grid line `index`."""
        if axis is Axis.HORIZONTAL:
            cells = [row[index] for row in self.view]
        else:
            cells = self.view[index]
        return any(d.is_black(axis) for cell in cells for d in cell)

    def edge_sharpness(self, axis: Axis, place: Place, model: SharpnessModel = SharpnessModel.ZERO_ONE) -> float:
        if model is SharpnessModel.ZERO_ONE:
            cells = self.read_edge(axis, place)
            return 1.0 if any(d.is_black(axis) for cell in cells for d in cell) else 0.0
        raise ValueError(f"Unknown sharpness model: {model}")
