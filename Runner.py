"""
Runner.py — Glyph Comb batch runner

Loads Script.yaml and executes each enabled step by calling Functions.py by name.

Usage:
  python Runner.py Script.yaml
"""

from __future__ import annotations

import dataclasses
import json
import logging
import sys
from enum import Enum
from pathlib import Path
from typing import Any, Dict, Optional

import yaml

import Functions  # local file


def load_yaml(path: str) -> Dict[str, Any]:
    with open(path, "r", encoding="utf-8") as f:
        return yaml.safe_load(f)


def ensure_dir(p: Path) -> None:
    p.mkdir(parents=True, exist_ok=True)


def setup_logger(log_dir: Optional[Path] = None) -> logging.Logger:
    """Console at INFO; with log_dir, also run.log at DEBUG."""
    logger = logging.getLogger()
    logger.setLevel(logging.DEBUG)

    # Clear existing handlers
    logger.handlers.clear()

    console_handler = logging.StreamHandler()
    console_handler.setLevel(logging.INFO)
    console_handler.setFormatter(logging.Formatter("[%(levelname)s] %(message)s"))
    logger.addHandler(console_handler)

    if log_dir is not None:
        ensure_dir(log_dir)
        file_handler = logging.FileHandler(log_dir / "run.log", encoding="utf-8")
        file_handler.setLevel(logging.DEBUG)
        file_handler.setFormatter(logging.Formatter("%(asctime)s [%(levelname)s] %(name)s: %(message)s"))
        logger.addHandler(file_handler)

    return logger


def run_script(cfg: Dict[str, Any]) -> Dict[str, Any]:
    """Run every enabled step of `cfg`; returns the final context."""
    out_dir = Path(cfg["outputs"]["out_dir"])
    ensure_dir(out_dir)

    ctx: Dict[str, Any] = {"cfg": cfg}

    for step in cfg.get("steps", []):
        if not step.get("enabled", True):
            continue

        name = step["name"]
        fn_name = step["fn"]
        fn = getattr(Functions, fn_name, None)
        if fn is None:
            raise RuntimeError(f"Step {name}: function not found: {fn_name}")

        print(f"\n=== {name} ({fn_name}) ===")
        fn(ctx, cfg)

        # lightweight checkpoint after each step
        if cfg["outputs"].get("save_json", True):
            chk = out_dir / f"{name}.json"
            with open(chk, "w", encoding="utf-8") as f:
                json.dump(_jsonable(ctx), f, indent=2, ensure_ascii=False)

    return ctx


def main() -> int:
    if len(sys.argv) < 2:
        print("Usage: python Runner.py Script.yaml")
        return 2

    cfg = load_yaml(sys.argv[1])
    setup_logger(Path(cfg["outputs"]["out_dir"]))

    run_script(cfg)

    print("\nDone.")
    return 0


def _jsonable(x: Any) -> Any:
    """
    Make ctx JSON-safe. Keys starting with "_" hold live objects and are skipped.
    """
    if isinstance(x, Enum):
        return x.value
    if isinstance(x, (str, int, float, bool)) or x is None:
        return x
    if isinstance(x, dict):
        return {str(k): _jsonable(v) for k, v in x.items() if not str(k).startswith("_")}
    if isinstance(x, (list, tuple)):
        return [_jsonable(v) for v in x]
    if hasattr(x, "to_dict"):
        return _jsonable(x.to_dict())
    if dataclasses.is_dataclass(x):
        return _jsonable(dataclasses.asdict(x))
    if hasattr(x, "__dict__"):
        return _jsonable(vars(x))
    return str(x)


if __name__ == "__main__":
    raise SystemExit(main())
