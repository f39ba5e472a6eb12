from __future__ import annotations

import datetime as dt
import json
from pathlib import Path

from estate3.engine.utils.io import ensure_dir, read_yaml, safe_path_segment, write_json


def test_safe_path_segment_replaces_hostile_characters() -> None:
    assert safe_path_segment('smith/jones:"trust"') == "smith-jones--trust-"
    assert safe_path_segment("estate. ") == "estate"


def test_yaml_reader_and_json_writer(tmp_path: Path) -> None:
    target = ensure_dir(tmp_path / "a" / "b")
    assert target.is_dir()

    yaml_path = target / "c.yml"
    yaml_path.write_text("born: 1964-03-15\nvalue: 1\n", encoding="utf-8")
    assert read_yaml(yaml_path) == {"born": dt.date(1964, 3, 15), "value": 1}

    json_path = write_json({"b": 1, "a": 2}, tmp_path / "y" / "d.json")
    text = json_path.read_text(encoding="utf-8")
    assert text.endswith("\n")
    assert list(json.loads(text)) == ["a", "b"]
