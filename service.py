"""
service.py — the library contract used by editors and batch tools

  lookup(name)               stored prototype or None
  resolve(name)              CharTree
  layout(tree)               laid-out StrucComb
  save_component(name, p)    write back an edited prototype

FasFile is the project file: {name, version, strucs, config}.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple, Union

from combination import StrucComb
from config import Config
from construct import CharTree, CstTable
from glyph_types import Place, SINGLE
from layout import LayoutState, layout_comb
from resolver import Adjacency, get_char_tree, get_char_tree_in
from struc import StrucProto

logger = logging.getLogger(__name__)

Strucs = Dict[str, StrucProto]


# ----------------------------
# Project file
# ----------------------------

class FasFile:
    def __init__(
        self,
        name: str = "untitled",
        version: str = "0.1",
        strucs: Optional[Strucs] = None,
        config: Optional[Config] = None,
    ):
        self.name = name
        self.version = version
        self.strucs: Strucs = strucs if strucs is not None else {}
        self.config: Config = config if config is not None else Config.default()

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "FasFile":
        if not isinstance(data, dict):
            raise ValueError("Project file must be a JSON object")
        strucs = {name: StrucProto.from_dict(s) for name, s in data.get("strucs", {}).items()}
        config = Config.from_dict(data["config"]) if "config" in data else Config.default()
        return cls(str(data.get("name", "untitled")), str(data.get("version", "0.1")), strucs, config)

    @classmethod
    def from_file(cls, path: Union[str, Path]) -> "FasFile":
        p = Path(path)
        if not p.exists():
            raise FileNotFoundError(f"Project file not found: {p}")
        with open(p, "r", encoding="utf-8") as f:
            return cls.from_dict(json.load(f))

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "version": self.version,
            "strucs": {name: s.to_dict() for name, s in self.strucs.items()},
            "config": self.config.to_dict(),
        }

    def save(self, path: Union[str, Path], pretty: bool = False) -> int:
        """Write the project; returns the number of characters written."""
        text = json.dumps(self.to_dict(), ensure_ascii=False, indent=2 if pretty else None)
        Path(path).write_text(text, encoding="utf-8")
        return len(text)

    def versions(self) -> Tuple[int, int]:
        """(major, minor); unparsable parts read as 0."""
        parts = self.version.split(".")

        def num(i: int) -> int:
            try:
                return int(parts[i])
            except (IndexError, ValueError):
                return 0

        return num(0), num(1)


# ----------------------------
# Services
# ----------------------------

class Service:
    """Base of the library contract. Subclasses provide table, config and prototypes."""

    def get_table(self) -> CstTable:
        raise NotImplementedError()

    def get_config(self) -> Config:
        raise NotImplementedError()

    def get_strucs(self) -> Strucs:
        raise NotImplementedError()

    def lookup(self, name: str) -> Optional[StrucProto]:
        return self.get_strucs().get(name)

    def resolve(self, name: str) -> CharTree:
        return get_char_tree(name, self.get_table(), self.get_config())

    def build_comb(self, name: str, adjacency: Adjacency) -> StrucComb:
        """Comb for `name` as a standalone node under `adjacency` (used for substitutes)."""
        tree = get_char_tree_in(name, (SINGLE, Place.START), adjacency, self.get_table(), self.get_config())
        return StrucComb.from_tree(tree, self.lookup, adjacency)

    def layout(self, tree: CharTree) -> StrucComb:
        comb, _ = self.layout_with_state(tree)
        return comb

    def layout_with_state(self, tree: CharTree) -> Tuple[StrucComb, LayoutState]:
        comb = StrucComb.from_tree(tree, self.lookup)
        state = layout_comb(comb, self.get_config(), self.build_comb)
        return comb, state

    def save_component(self, name: str, proto: StrucProto) -> None:
        raise NotImplementedError()

    def target_chars(self) -> List[str]:
        return self.get_table().target_chars(self.get_config().supplement)

    def target_char_trees(self) -> List[CharTree]:
        return [self.resolve(c) for c in self.target_chars()]


class SimpleService(Service):
    """In-memory service."""

    def __init__(self, table: Optional[CstTable] = None, config: Optional[Config] = None, strucs: Optional[Strucs] = None):
        self.table = table if table is not None else CstTable()
        self.config = config if config is not None else Config.default()
        self.strucs: Strucs = strucs if strucs is not None else {}

    def get_table(self) -> CstTable:
        return self.table

    def get_config(self) -> Config:
        return self.config

    def get_strucs(self) -> Strucs:
        return self.strucs

    def save_component(self, name: str, proto: StrucProto) -> None:
        self.strucs[name] = proto


class LocalService(Service):
    """Service backed by a project file. Nothing is served until a project is loaded."""

    def __init__(self, table: Optional[CstTable] = None):
        self.table = table if table is not None else CstTable()
        self.source: Optional[FasFile] = None
        self.changed = False

    def _source(self) -> FasFile:
        if self.source is None:
            raise RuntimeError("LocalService: no project loaded")
        return self.source

    def get_table(self) -> CstTable:
        return self.table

    def get_config(self) -> Config:
        return self._source().config

    def get_strucs(self) -> Strucs:
        return self._source().strucs

    def is_changed(self) -> bool:
        return self.changed

    def load_fas(self, data: FasFile) -> None:
        self.source = data
        self.changed = False

    def load_file(self, path: Union[str, Path]) -> None:
        self.load_fas(FasFile.from_file(path))
        logger.info("loaded project %s (%d components)", path, len(self.get_strucs()))

    def save(self, path: Union[str, Path]) -> None:
        if self.source is None:
            return
        self.source.save(path, pretty=True)
        self.changed = False

    def save_component(self, name: str, proto: StrucProto) -> None:
        if self.source is None:
            logger.warning("save_component %s ignored: no project loaded", name)
            return
        self.source.strucs[name] = proto
        self.changed = True
