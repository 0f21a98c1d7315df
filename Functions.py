"""
Functions.py — Glyph Comb batch steps

Each step is fn(ctx, cfg) and is called by Runner.py in Script.yaml order:
- load_project    : project file (prototypes + layout config)
- load_table      : construction table, builds the service
- select_targets  : which characters to compose
- resolve_chars   : name -> structural tree
- layout_chars    : tree -> laid-out geometry (one worker per character)
- export_results  : JSON with trees, geometry and failures

Objects that are not plain data live under ctx keys starting with "_"; the
runner leaves those out of its checkpoints.
"""

from __future__ import annotations

import json
import logging
from concurrent.futures import ThreadPoolExecutor, as_completed
from pathlib import Path
from typing import Any, Dict, List

from construct import CharTree, CstError, CstTable
from service import FasFile, LocalService

logger = logging.getLogger(__name__)

# Context is a dict that accumulates outputs of passes.
Context = Dict[str, Any]


# -----------------------------
# Load
# -----------------------------

def load_project(ctx: Context, cfg: Dict[str, Any]) -> None:
    """
    Requires:
      cfg["inputs"]["project"]  path to the project JSON
    Produces:
      ctx["_project"]  FasFile
      ctx["project"]   {name, version, components}
    """
    path = Path(cfg["inputs"]["project"])
    fas = FasFile.from_file(path)
    major, minor = fas.versions()

    ctx["_project"] = fas
    ctx["project"] = {
        "name": fas.name,
        "version": f"{major}.{minor}",
        "components": len(fas.strucs),
    }
    print(f"project: {fas.name} v{major}.{minor}  components={len(fas.strucs)}")


def load_table(ctx: Context, cfg: Dict[str, Any]) -> None:
    """
    Requires:
      ctx["_project"]
      cfg["inputs"]["table"]  optional path; an empty table if missing
    Produces:
      ctx["_service"]  LocalService over the project and table
      ctx["table"]     {entries}
    """
    if "_project" not in ctx:
        raise ValueError("load_table: run load_project first")

    table_path = cfg["inputs"].get("table")
    table = CstTable.load(table_path) if table_path else CstTable()

    service = LocalService(table)
    service.load_fas(ctx["_project"])
    ctx["_service"] = service
    ctx["table"] = {"entries": len(table)}
    print(f"table: {len(table)} entries")


# -----------------------------
# Resolve
# -----------------------------

def select_targets(ctx: Context, cfg: Dict[str, Any]) -> None:
    """
    params.targets: list of names, a string of characters, or empty for every
    single-character name of the table and supplement.
    """
    service: LocalService = ctx["_service"]
    targets = cfg.get("params", {}).get("targets") or []
    if isinstance(targets, str):
        targets = list(targets)
    if not targets:
        targets = service.target_chars()

    limit = int(cfg.get("params", {}).get("limit", 0))
    if limit > 0:
        targets = targets[:limit]

    ctx["targets"] = list(targets)
    print(f"targets: {len(targets)}")


def resolve_chars(ctx: Context, cfg: Dict[str, Any]) -> None:
    """
    Produces:
      ctx["_trees"]     name -> CharTree
      ctx["trees"]      name -> tree dict
      ctx["failures"]   [{"char", "stage", "error"}]
    """
    service: LocalService = ctx["_service"]
    trees: Dict[str, CharTree] = {}
    failures: List[Dict[str, str]] = ctx.setdefault("failures", [])

    for name in ctx.get("targets", []):
        try:
            trees[name] = service.resolve(name)
        except CstError as e:
            logger.warning("resolve %s failed: %s", name, e)
            failures.append({"char": name, "stage": "resolve", "error": str(e)})

    ctx["_trees"] = trees
    ctx["trees"] = {name: t.to_dict() for name, t in trees.items()}
    print(f"resolved: {len(trees)}  failed: {len(ctx['targets']) - len(trees)}")


# -----------------------------
# Layout
# -----------------------------

def _layout_one(service: LocalService, name: str, tree: CharTree) -> Dict[str, Any]:
    comb, state = service.layout_with_state(tree)
    return {
        "char": name,
        "comb_name": tree.get_comb_name(),
        "state": state.to_dict(),
        "geometry": comb.get_paths().to_dict(),
        "components": comb.get_comp_infos(),
    }


def layout_chars(ctx: Context, cfg: Dict[str, Any]) -> None:
    """
    One task per character on a thread pool. Every task builds its own
    StrucComb from copies of the prototypes; a CstError is a per-character
    failure, not a batch failure.

    Produces:
      ctx["layouts"]   name -> layout record
      ctx["failures"]  (appended)
    """
    service: LocalService = ctx["_service"]
    trees: Dict[str, CharTree] = ctx.get("_trees", {})
    failures: List[Dict[str, str]] = ctx.setdefault("failures", [])
    max_workers = int(cfg.get("params", {}).get("max_workers", 4))

    layouts: Dict[str, Dict[str, Any]] = {}
    with ThreadPoolExecutor(max_workers=max_workers) as executor:
        futures = {executor.submit(_layout_one, service, name, tree): name for name, tree in trees.items()}
        for future in as_completed(futures):
            name = futures[future]
            try:
                layouts[name] = future.result()
            except CstError as e:
                logger.warning("layout %s failed: %s", name, e)
                failures.append({"char": name, "stage": "layout", "error": str(e)})

    # keep target order in the output
    ctx["layouts"] = {name: layouts[name] for name in ctx.get("targets", []) if name in layouts}
    print(f"laid out: {len(layouts)}  failed: {len(trees) - len(layouts)}")


# -----------------------------
# Export
# -----------------------------

def export_results(ctx: Context, cfg: Dict[str, Any]) -> None:
    """
    Writes:
      <out_dir>/<outputs.results or glyphs.json>
    Produces:
      ctx["resultsPath"]
    """
    out_dir = Path(cfg["outputs"]["out_dir"])
    out_dir.mkdir(parents=True, exist_ok=True)
    out_path = out_dir / cfg["outputs"].get("results", "glyphs.json")

    payload = {
        "project": ctx.get("project", {}),
        "glyphs": ctx.get("layouts", {}),
        "failures": ctx.get("failures", []),
    }
    with open(out_path, "w", encoding="utf-8") as f:
        json.dump(payload, f, indent=2, ensure_ascii=False)

    ctx["resultsPath"] = str(out_path)
    print(f"results -> {out_path}")
