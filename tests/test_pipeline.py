import json
from pathlib import Path

import pytest

import Functions
import Runner

DATA = Path(__file__).resolve().parent.parent / "data"


def script(tmp_path, table, targets=""):
    return {
        "inputs": {"project": str(DATA / "project.fas.json"), "table": str(table)},
        "params": {"targets": targets, "limit": 0, "max_workers": 2},
        "outputs": {"out_dir": str(tmp_path / "out"), "save_json": True, "results": "glyphs.json"},
        "steps": [
            {"name": "project", "fn": "load_project"},
            {"name": "table", "fn": "load_table"},
            {"name": "targets", "fn": "select_targets"},
            {"name": "resolve", "fn": "resolve_chars"},
            {"name": "layout", "fn": "layout_chars"},
            {"name": "export", "fn": "export_results"},
        ],
    }


def test_script_steps_exist():
    cfg = Runner.load_yaml(str(Path(__file__).resolve().parent.parent / "Script.yaml"))
    for step in cfg["steps"]:
        assert callable(getattr(Functions, step["fn"]))


def test_sample_project(tmp_path):
    ctx = Runner.run_script(script(tmp_path, DATA / "table.json"))

    assert ctx["project"] == {"name": "sample", "version": "0.2", "components": 5}
    assert ctx["targets"] == sorted(["叶", "古", "困", "厈", "口", "十", "木"])
    assert ctx["failures"] == []

    out = tmp_path / "out"
    payload = json.loads((out / "glyphs.json").read_text(encoding="utf-8"))
    assert list(payload["glyphs"]) == ctx["targets"]
    assert payload["glyphs"]["叶"]["comb_name"] == "叶 ⿰(口+十)"
    assert payload["glyphs"]["叶"]["state"]["bases"] == {"h": 5, "v": 2}

    # checkpoints hold plain data only
    chk = json.loads((out / "resolve.json").read_text(encoding="utf-8"))
    assert "_service" not in chk
    assert chk["trees"]["困"]["tp"] == "⿴"


def test_failures_are_recorded(tmp_path):
    table = tmp_path / "table.json"
    table.write_text(
        json.dumps({"叶": ["⿰", ["口", "十"]], "坏": ["⿰", ["土", "不"]]}, ensure_ascii=False),
        encoding="utf-8",
    )
    ctx = Runner.run_script(script(tmp_path, table, targets="叶坏"))

    assert list(ctx["layouts"]) == ["叶"]
    assert len(ctx["failures"]) == 1
    failure = ctx["failures"][0]
    assert failure["char"] == "坏"
    assert failure["stage"] == "layout"
    assert "土" in failure["error"]


def test_limit(tmp_path):
    cfg = script(tmp_path, DATA / "table.json")
    cfg["params"]["limit"] = 2
    cfg["steps"] = cfg["steps"][:3]
    ctx = Runner.run_script(cfg)
    assert len(ctx["targets"]) == 2


def test_unknown_step(tmp_path):
    cfg = script(tmp_path, DATA / "table.json")
    cfg["steps"] = [{"name": "oops", "fn": "no_such_step"}]
    with pytest.raises(RuntimeError):
        Runner.run_script(cfg)


def test_table_needs_project(tmp_path):
    with pytest.raises(ValueError):
        Functions.load_table({}, {"inputs": {}})
