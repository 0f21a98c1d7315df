"""
config.py — layout policy

Config is parsed from the project file's "config" object. Every numeric knob
accepts either one value for both axes or an object {h, v}. The raw object is
kept so a project round-trips unchanged.
"""

from __future__ import annotations

import copy
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple

from construct import CpAttrs
from glyph_types import AXES, Axis, AxisPair, CstType, Place

logger = logging.getLogger(__name__)


# ----------------------------
# Margin function
# ----------------------------

@dataclass
class ZiMian:
    """
    Piecewise-linear margin fraction as a function of allocation-unit count.
    points: [(units, fraction)] ordered by units.
    """
    points: List[Tuple[int, float]] = field(default_factory=lambda: [(0, 1.0)])

    @classmethod
    def from_value(cls, value: Any) -> "ZiMian":
        pts = [(int(n), float(f)) for n, f in value]
        if not pts:
            raise ValueError("zimian needs at least one point")
        pts.sort(key=lambda p: p[0])
        return cls(pts)

    def val_in(self, units: float) -> float:
        pts = self.points
        if units <= pts[0][0]:
            return pts[0][1]
        if units >= pts[-1][0]:
            return pts[-1][1]
        for (n0, f0), (n1, f1) in zip(pts, pts[1:]):
            if n0 <= units <= n1:
                if n1 == n0:
                    return f1
                return f0 + (f1 - f0) * (units - n0) / (n1 - n0)
        return pts[-1][1]

    def max_val(self) -> float:
        return max(f for _, f in self.points)

    def to_value(self) -> List[List[float]]:
        return [[n, f] for n, f in self.points]


# ----------------------------
# Adjacency rules
# ----------------------------

def _match_token(token: str, present: bool) -> Optional[bool]:
    if token == "*":
        return True
    if token == "o":
        return present
    if token == "x":
        return not present
    return None


def place_match(rule: str, places: AxisPair[List[bool]]) -> bool:
    """
    Match an adjacency pattern against the four sides [h0, h1, v0, v1].

    Tokens: "x" side free, "o" side touches a sibling, "*" either.
      1 token  : applies to all four sides
      2 tokens : one per axis (both sides of that axis)
      4 tokens : h-start h-end v-start v-end
    Alternatives are separated by ";" and any of them may match.
    """
    sides = [places.h[0], places.h[1], places.v[0], places.v[1]]
    for alt in rule.split(";"):
        tokens = alt.split()
        if len(tokens) == 1:
            expanded = tokens * 4
        elif len(tokens) == 2:
            expanded = [tokens[0], tokens[0], tokens[1], tokens[1]]
        elif len(tokens) == 4:
            expanded = tokens
        else:
            logger.warning("place rule %r: expected 1, 2 or 4 tokens", alt)
            continue

        results = [_match_token(t, s) for t, s in zip(expanded, sides)]
        if any(r is None for r in results):
            logger.warning("place rule %r: unknown token", alt)
            continue
        if all(results):
            return True
    return False


# ----------------------------
# Config
# ----------------------------

DEFAULT_TYPE_REPLACE: Dict[str, Dict[str, Dict[str, str]]] = {
    "⿺": {"Start": {"虎": "虎字包围", "尺": "尺字包围", "风": "风字包围"}},
    "⿵": {"Start": {"尺": "尺下包围", "戕": "戕下包围"}},
}


def _float(v: Any) -> float:
    return float(v)


def _int(v: Any) -> int:
    return int(v)


def _floats(v: Any) -> List[float]:
    if isinstance(v, (int, float)):
        return [float(v)]
    out = [float(x) for x in v]
    if not out:
        raise ValueError("min_val needs at least one value")
    return out


def _center(v: Any) -> Tuple[float, float]:
    return float(v.get("target", 0.5)), float(v.get("corr", 0.0))


class Config:
    def __init__(self, data: Optional[Dict[str, Any]] = None):
        self.data: Dict[str, Any] = copy.deepcopy(data) if data else {}
        d = self.data

        self.size: AxisPair[float] = AxisPair.from_value(d.get("size", 1.0), _float, 1.0)
        self.min_val: AxisPair[List[float]] = AxisPair.from_value(d.get("min_val", [0.05]), _floats, [0.05])
        self.zimian: AxisPair[ZiMian] = AxisPair.from_value(
            d.get("zimian", [[0, 1.0]]), ZiMian.from_value, ZiMian()
        )
        self.reduce_trigger: AxisPair[float] = AxisPair.from_value(d.get("reduce_trigger", 0.0), _float, 0.0)
        self.visual_corr: AxisPair[float] = AxisPair.from_value(d.get("visual_corr", 0.0), _float, 0.0)
        self.interval: AxisPair[int] = AxisPair.from_value(d.get("interval", 1), _int, 1)

        center = d.get("center", {})
        if isinstance(center, dict) and ("h" in center or "v" in center):
            self.center = AxisPair(
                _center(center.get("h", {})),
                _center(center.get("v", {})),
            )
        else:
            self.center = AxisPair.splat(_center(center if isinstance(center, dict) else {}))

        self.stroke_width: float = float(d.get("stroke_width", 0.05))
        self.strict_surround: bool = bool(d.get("strict_surround", False))

        self.type_replace: Dict[str, Dict[str, Dict[str, str]]] = d.get("type_replace", {})
        self.place_replace: Dict[str, List[Tuple[str, str]]] = {
            name: _rule_pairs(rules) for name, rules in d.get("place_replace", {}).items()
        }
        self.reduce_replace: AxisPair[Dict[str, str]] = AxisPair(
            dict(d.get("reduce_replace", {}).get("h", {})),
            dict(d.get("reduce_replace", {}).get("v", {})),
        )
        self.supplement: Dict[str, CpAttrs] = {
            name: CpAttrs.from_value(v) for name, v in d.get("supplement", {}).items()
        }

        for axis in AXES:
            if not self.min_val.get(axis):
                raise ValueError(f"min_val for {axis.value} is empty")

    @classmethod
    def default(cls) -> "Config":
        return cls({"type_replace": copy.deepcopy(DEFAULT_TYPE_REPLACE)})

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> "Config":
        return cls(data)

    def to_dict(self) -> Dict[str, Any]:
        return copy.deepcopy(self.data)

    # ---- scalar knobs ----

    def get_reduce_trigger(self, axis: Axis) -> float:
        return self.reduce_trigger.get(axis)

    def get_visual_corr(self, axis: Axis) -> float:
        return self.visual_corr.get(axis)

    # ---- substitution ----

    def type_replace_name(self, name: str, in_tp: Tuple[CstType, Place]) -> Optional[str]:
        """Replacement for `name` inside (type, place), applied until it settles."""
        tp, place = in_tp
        table = self.type_replace.get(tp.symbol(), {}).get(place.value, {})
        seen = {name}
        cur = name
        while cur in table:
            nxt = table[cur]
            if nxt in seen:
                logger.warning("type_replace cycle at %s", nxt)
                break
            seen.add(nxt)
            cur = nxt
        return cur if cur != name else None

    def place_replace_name(self, name: str, adjacency: AxisPair[List[bool]]) -> Optional[str]:
        for rule, replacement in self.place_replace.get(name, []):
            if place_match(rule, adjacency):
                return replacement
        return None

    def reduce_replace_name(self, axis: Axis, name: str) -> Optional[str]:
        return self.reduce_replace.get(axis).get(name)

    def check_name_replace(
        self, name: str, in_tp: Tuple[CstType, Place], adjacency: AxisPair[List[bool]]
    ) -> Optional[str]:
        """
        Type substitution first; then adjacency substitution on its result,
        falling back to the type result. Without a type substitution, the
        adjacency substitution of the original name.
        """
        typed = self.type_replace_name(name, in_tp)
        if typed is not None:
            return self.place_replace_name(typed, adjacency) or typed
        return self.place_replace_name(name, adjacency)


def _rule_pairs(rules: Any) -> List[Tuple[str, str]]:
    if isinstance(rules, dict):
        return [(str(k), str(v)) for k, v in rules.items()]
    return [(str(r), str(n)) for r, n in rules]
