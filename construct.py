"""
construct.py — construction table and structural trees

CpAttrs      : how one name is built (CstType + components)
CharTree     : name expanded recursively into a structural tree (no geometry)
CstTable     : name -> CpAttrs, loaded from JSON (object or array form)
CstError     : failures of resolve/layout
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Set, Union

from glyph_types import Axis, CstType, SINGLE

logger = logging.getLogger(__name__)


# ----------------------------
# Errors
# ----------------------------

class CstError(Exception):
    """Base of resolve/layout failures."""


class EmptyError(CstError):
    def __init__(self, name: str):
        super().__init__(f"Empty component: {name}")
        self.name = name


class AxisTransformError(CstError):
    def __init__(self, axis: Axis, length: float, base_len: int):
        super().__init__(f"The minimum length {base_len} greater than {length:.3f} in {axis.value}!")
        self.axis = axis
        self.length = length
        self.base_len = base_len


class SurroundError(CstError):
    def __init__(self, tp: CstType, comp: str):
        super().__init__(f"Cannot normalize {comp} inside {tp.symbol()}")
        self.tp = tp
        self.comp = comp


# ----------------------------
# Construction attributes
# ----------------------------

Component = Union[str, "CpAttrs"]


@dataclass
class CpAttrs:
    tp: CstType
    components: List[Component] = field(default_factory=list)

    @classmethod
    def single(cls) -> "CpAttrs":
        return cls(SINGLE, [])

    def comps_name(self) -> str:
        """Display name of an anonymous node, e.g. "⿰(a+b)"."""
        names = [c if isinstance(c, str) else c.comps_name() for c in self.components]
        return f"{self.tp.symbol()}({'+'.join(names)})"

    # ---- serialization ----

    @classmethod
    def from_value(cls, value: Any) -> "CpAttrs":
        """
        Object form {tp, components}, array form [symbol, [components]] or a
        bare symbol string (a single).
        """
        if isinstance(value, str):
            tp = CstType.from_symbol(value)
            return cls(tp, [])
        if isinstance(value, dict):
            tp = CstType.from_symbol(value.get("tp", "□"))
            comps = [_component_from(c) for c in value.get("components", [])]
            return cls(tp, comps)
        if isinstance(value, (list, tuple)) and len(value) == 2:
            tp = CstType.from_symbol(value[0])
            comps = [_component_from(c) for c in value[1]]
            return cls(tp, comps)
        raise ValueError(f"Bad construction attributes: {value!r}")

    def to_value(self) -> Dict[str, Any]:
        return {
            "tp": self.tp.symbol(),
            "components": [c if isinstance(c, str) else c.to_value() for c in self.components],
        }


def _component_from(value: Any) -> Component:
    if isinstance(value, str):
        return value
    if isinstance(value, dict) and "name" in value and len(value) == 1:
        return str(value["name"])
    return CpAttrs.from_value(value)


# ----------------------------
# Structural tree
# ----------------------------

@dataclass
class CharTree:
    name: str
    tp: CstType = SINGLE
    children: List["CharTree"] = field(default_factory=list)

    @classmethod
    def new_single(cls, name: str) -> "CharTree":
        return cls(name, SINGLE, [])

    def get_comb_name(self) -> str:
        """Name plus its decomposition, e.g. "好 ⿰(女+子)"."""
        if self.tp.is_single():
            return self.name
        return f"{self.name} {self.tp.symbol()}({'+'.join(c.get_comb_name() for c in self.children)})"

    def leaves(self) -> List[str]:
        if self.tp.is_single():
            return [self.name]
        return [n for c in self.children for n in c.leaves()]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "tp": self.tp.symbol(),
            "children": [c.to_dict() for c in self.children],
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "CharTree":
        return cls(
            data["name"],
            CstType.from_symbol(data.get("tp", "□")),
            [cls.from_dict(c) for c in data.get("children", [])],
        )


# ----------------------------
# Table
# ----------------------------

class CstTable(Dict[str, CpAttrs]):
    """name -> CpAttrs. Read-only during a layout pass."""

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "CstTable":
        table = cls()
        for name, value in data.items():
            if name in table:
                logger.warning("duplicate table entry %s", name)
            table[name] = CpAttrs.from_value(value)
        return table

    @classmethod
    def from_json_array(cls, pairs: Iterable[Any]) -> "CstTable":
        """[[name, value], ...] form; later entries override earlier ones."""
        table = cls()
        for name, value in pairs:
            if name in table:
                logger.warning("duplicate table entry %s", name)
            table[name] = CpAttrs.from_value(value)
        return table

    @classmethod
    def load(cls, path: Union[str, Path]) -> "CstTable":
        p = Path(path)
        if not p.exists():
            raise FileNotFoundError(f"Table not found: {p}")
        with open(p, "r", encoding="utf-8") as f:
            data = json.load(f)
        if isinstance(data, dict):
            return cls.from_dict(data)
        if isinstance(data, list):
            return cls.from_json_array(data)
        raise ValueError(f"Table {p}: expected an object or an array, got {type(data).__name__}")

    def to_dict(self) -> Dict[str, Any]:
        return {name: attrs.to_value() for name, attrs in self.items()}

    def target_chars(self, supplement: Optional[Dict[str, CpAttrs]] = None) -> List[str]:
        """Single-character names of the table and the supplement, sorted."""
        names: Set[str] = {n for n in self if len(n) == 1}
        if supplement:
            names.update(n for n in supplement if len(n) == 1)
        return sorted(names)


def all_requirements(table: Dict[str, CpAttrs]) -> Set[str]:
    """
    Leaf component names needed to build every entry of `table`: names that
    appear as components but are singles (or missing) in the table.
    """
    needed: Set[str] = set()

    def walk(attrs: CpAttrs) -> None:
        for c in attrs.components:
            if isinstance(c, CpAttrs):
                walk(c)
                continue
            sub = table.get(c)
            if sub is None or sub.tp.is_single():
                needed.add(c)

    for attrs in table.values():
        walk(attrs)
    return needed
