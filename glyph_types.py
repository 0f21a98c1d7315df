# glyph_types.py
#
# Glyph Comb "constitution":
# - defines core types (Axis, Place, AxisPair, AssignVal, KeyPoint, KeyPath, CstType)
# - defines invariants (assert_assign_val, assert_allocs, assert_axis_pair)
# - defines small, pure helpers over those types
#
# NO layout logic belongs here (no resolving, no allocation, no views).

from __future__ import annotations

import copy
import math
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, Generic, Iterator, List, Optional, Tuple, TypeAlias, TypeVar

T = TypeVar("T")
U = TypeVar("U")

# (x, y) in work space
WorkPoint: TypeAlias = Tuple[float, float]


# ----------------------------
# Axis / Place
# ----------------------------

class Axis(str, Enum):
    HORIZONTAL = "h"
    VERTICAL = "v"

    def inverse(self) -> "Axis":
        return Axis.VERTICAL if self is Axis.HORIZONTAL else Axis.HORIZONTAL

    def symbol(self) -> str:
        return self.value


AXES: Tuple[Axis, Axis] = (Axis.HORIZONTAL, Axis.VERTICAL)


class Place(str, Enum):
    START = "Start"
    MIDDLE = "Middle"
    END = "End"

    def inverse(self) -> "Place":
        if self is Place.START:
            return Place.END
        if self is Place.END:
            return Place.START
        return Place.MIDDLE

    @staticmethod
    def from_index(i: int, end: int) -> "Place":
        """Place of item i in a sequence whose last index is `end`."""
        if i == 0:
            return Place.START
        if i == end:
            return Place.END
        return Place.MIDDLE


SIDES: Tuple[Place, Place] = (Place.START, Place.END)


# ----------------------------
# AxisPair
# ----------------------------

@dataclass(slots=True)
class AxisPair(Generic[T]):
    """
    One value per axis. All sized/positional quantities travel as AxisPair
    so axis-symmetric code is written once and called with an Axis.
    """
    h: T
    v: T

    @classmethod
    def splat(cls, val: T) -> "AxisPair[T]":
        return cls(copy.deepcopy(val), copy.deepcopy(val))

    @classmethod
    def from_fn(cls, fn: Callable[[Axis], T]) -> "AxisPair[T]":
        return cls(fn(Axis.HORIZONTAL), fn(Axis.VERTICAL))

    def get(self, axis: Axis) -> T:
        return self.h if axis is Axis.HORIZONTAL else self.v

    def set(self, axis: Axis, val: T) -> None:
        if axis is Axis.HORIZONTAL:
            self.h = val
        else:
            self.v = val

    def map(self, fn: Callable[[T], U]) -> "AxisPair[U]":
        return AxisPair(fn(self.h), fn(self.v))

    def zip(self, other: "AxisPair[U]") -> "AxisPair[Tuple[T, U]]":
        return AxisPair((self.h, other.h), (self.v, other.v))

    def items(self) -> List[Tuple[Axis, T]]:
        return [(Axis.HORIZONTAL, self.h), (Axis.VERTICAL, self.v)]

    def __iter__(self) -> Iterator[T]:
        yield self.h
        yield self.v

    def copy(self) -> "AxisPair[T]":
        return AxisPair(copy.deepcopy(self.h), copy.deepcopy(self.v))

    def to_dict(self, fn: Optional[Callable[[T], Any]] = None) -> Dict[str, Any]:
        f = fn or (lambda x: x)
        return {"h": f(self.h), "v": f(self.v)}

    @classmethod
    def from_value(cls, value: Any, parse: Callable[[Any], T], default: T) -> "AxisPair[T]":
        """
        Project-file convention: either a single value used for both axes or an
        object {h, v}. A missing axis in the object form takes `default`.
        """
        if isinstance(value, dict):
            h = parse(value["h"]) if "h" in value else copy.deepcopy(default)
            v = parse(value["v"]) if "v" in value else copy.deepcopy(default)
            return cls(h, v)
        item = parse(value)
        return cls(item, copy.deepcopy(item))


def assert_axis_pair(p: Any) -> None:
    assert isinstance(p, AxisPair), f"expected AxisPair, got {type(p).__name__}"
    assert type(p.h) is type(p.v) or (p.h is None or p.v is None), "AxisPair halves must share a type"


# ----------------------------
# AssignVal + invariants
# ----------------------------

@dataclass(slots=True)
class AssignVal:
    """
    Allocated length: `base` is the guaranteed minimum, `excess` the part
    the correction passes may move around. base is never reduced once set.
    """
    base: float = 0.0
    excess: float = 0.0

    def total(self) -> float:
        return self.base + self.excess

    def __add__(self, other: "AssignVal") -> "AssignVal":
        return AssignVal(self.base + other.base, self.excess + other.excess)

    def to_dict(self) -> Dict[str, float]:
        return {"base": float(self.base), "excess": float(self.excess)}


def assert_assign_val(a: AssignVal) -> None:
    assert isinstance(a, AssignVal), "expected AssignVal"
    assert math.isfinite(a.base) and math.isfinite(a.excess), "AssignVal must be finite"
    assert a.base >= 0.0, f"AssignVal base must be >= 0; got {a.base}"


def assert_allocs(allocs: List[int]) -> None:
    """
    Invariants:
      - list of ints
      - every weight >= 0 (0 marks a virtual, non-spacing slot)
    """
    assert isinstance(allocs, list), "allocs must be a list"
    for n in allocs:
        assert isinstance(n, int) and not isinstance(n, bool), f"alloc must be int; got {n!r}"
        assert n >= 0, f"alloc must be >= 0; got {n}"


def total_of(values: List[AssignVal]) -> float:
    return sum(v.total() for v in values)


# ----------------------------
# Key points / paths
# ----------------------------

@dataclass(slots=True)
class PosWeight:
    # `from` is a keyword; serialized as "from"
    from_: int = 1
    pos: int = 0
    to: int = 1

    def to_dict(self) -> Dict[str, int]:
        return {"from": self.from_, "pos": self.pos, "to": self.to}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "PosWeight":
        return cls(int(data.get("from", 1)), int(data.get("pos", 0)), int(data.get("to", 1)))


@dataclass(slots=True)
class KeyPoint:
    pos: Tuple[float, float]
    weight: PosWeight = field(default_factory=PosWeight)

    @property
    def x(self) -> float:
        return self.pos[0]

    @property
    def y(self) -> float:
        return self.pos[1]

    def to_dict(self) -> Dict[str, Any]:
        return {"pos": {"x": self.pos[0], "y": self.pos[1]}, "weight": self.weight.to_dict()}

    @classmethod
    def from_dict(cls, data: Any) -> "KeyPoint":
        # accepts {"pos": {x, y} | [x, y], "weight": {...}} or a bare [x, y]
        if isinstance(data, (list, tuple)):
            return cls((data[0], data[1]))
        pos = data["pos"]
        if isinstance(pos, dict):
            xy = (pos["x"], pos["y"])
        else:
            xy = (pos[0], pos[1])
        weight = PosWeight.from_dict(data["weight"]) if "weight" in data else PosWeight()
        return cls(xy, weight)


@dataclass(slots=True)
class KeyPath:
    """Ordered key points. Hidden paths count for geometry, not for visual weight."""
    kpoints: List[KeyPoint] = field(default_factory=list)
    hide: bool = False

    @classmethod
    def from_points(cls, points: List[Tuple[float, float]], hide: bool = False) -> "KeyPath":
        return cls([KeyPoint((p[0], p[1])) for p in points], hide)

    def points(self) -> List[Tuple[float, float]]:
        return [kp.pos for kp in self.kpoints]

    def is_dot(self) -> bool:
        """All key points coincide (a degenerate path)."""
        if not self.kpoints:
            return False
        head = self.kpoints[0].pos
        return all(kp.pos == head for kp in self.kpoints[1:])

    def to_dict(self) -> Dict[str, Any]:
        return {"kpoints": [kp.to_dict() for kp in self.kpoints], "hide": self.hide}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "KeyPath":
        return cls([KeyPoint.from_dict(p) for p in data.get("kpoints", [])], bool(data.get("hide", False)))


# ----------------------------
# Char box
# ----------------------------

@dataclass(frozen=True, slots=True)
class WorkBox:
    """Sub-box of the unit cell: (x0, y0) top-left, (x1, y1) bottom-right."""
    x0: float = 0.0
    y0: float = 0.0
    x1: float = 1.0
    y1: float = 1.0

    def size(self) -> AxisPair[float]:
        return AxisPair(self.x1 - self.x0, self.y1 - self.y0)

    def to_list(self) -> List[float]:
        return [self.x0, self.y0, self.x1, self.y1]

    @classmethod
    def from_value(cls, value: Any) -> "WorkBox":
        """
        Named boxes ("left", "right", "top", "bottom") or [x0, y0, x1, y1].
        """
        if isinstance(value, str):
            named = {
                "left": cls(0.0, 0.0, 0.5, 1.0),
                "right": cls(0.5, 0.0, 1.0, 1.0),
                "top": cls(0.0, 0.0, 1.0, 0.5),
                "bottom": cls(0.0, 0.5, 1.0, 1.0),
            }
            if value not in named:
                raise ValueError(f"Unknown char box name: {value}")
            return named[value]
        if isinstance(value, (list, tuple)) and len(value) == 4:
            x0, y0, x1, y1 = (float(v) for v in value)
            if not (x0 < x1 and y0 < y1):
                raise ValueError(f"Char box must have positive size: {value}")
            return cls(x0, y0, x1, y1)
        raise ValueError(f"Bad char box: {value!r}")


UNIT_BOX = WorkBox()


# ----------------------------
# Construction type
# ----------------------------

class CstKind(str, Enum):
    SINGLE = "Single"
    SCALE = "Scale"
    SURROUND = "Surround"


@dataclass(frozen=True, slots=True)
class CstType:
    """
    Composition node kind: Single, Scale(axis) or Surround(h place, v place).
    Serialized as one of the ideographic description symbols.
    """
    kind: CstKind
    axis: Optional[Axis] = None
    surround: Optional[Tuple[Place, Place]] = None  # (h, v)

    @classmethod
    def single(cls) -> "CstType":
        return cls(CstKind.SINGLE)

    @classmethod
    def scale(cls, axis: Axis) -> "CstType":
        return cls(CstKind.SCALE, axis=axis)

    @classmethod
    def surround_of(cls, h: Place, v: Place) -> "CstType":
        return cls(CstKind.SURROUND, surround=(h, v))

    def is_single(self) -> bool:
        return self.kind is CstKind.SINGLE

    def surround_place(self) -> AxisPair[Place]:
        if self.surround is None:
            raise ValueError(f"{self.symbol()} is not a surround type")
        return AxisPair(self.surround[0], self.surround[1])

    def symbol(self) -> str:
        if self.kind is CstKind.SINGLE:
            return "□"
        if self.kind is CstKind.SCALE:
            return "⿰" if self.axis is Axis.HORIZONTAL else "⿱"
        return _SURROUND_SYMBOLS[self.surround]

    @classmethod
    def from_symbol(cls, s: str) -> "CstType":
        tp = _FROM_SYMBOL.get(s)
        if tp is None:
            raise ValueError(f"Unknown construction symbol: {s!r}")
        return tp

    def __str__(self) -> str:
        return self.symbol()


_SURROUND_SYMBOLS: Dict[Tuple[Place, Place], str] = {
    (Place.START, Place.START): "⿸",
    (Place.END, Place.START): "⿹",
    (Place.START, Place.END): "⿺",
    (Place.END, Place.END): "⿽",
    (Place.MIDDLE, Place.START): "⿵",
    (Place.MIDDLE, Place.END): "⿶",
    (Place.START, Place.MIDDLE): "⿷",
    (Place.END, Place.MIDDLE): "⿼",
    (Place.MIDDLE, Place.MIDDLE): "⿴",
}

_FROM_SYMBOL: Dict[str, CstType] = {
    "": CstType.single(),
    "□": CstType.single(),
    "⿰": CstType.scale(Axis.HORIZONTAL),
    "⿲": CstType.scale(Axis.HORIZONTAL),
    "⿱": CstType.scale(Axis.VERTICAL),
    "⿳": CstType.scale(Axis.VERTICAL),
}
for _places, _sym in _SURROUND_SYMBOLS.items():
    _FROM_SYMBOL[_sym] = CstType.surround_of(*_places)

SINGLE = CstType.single()
