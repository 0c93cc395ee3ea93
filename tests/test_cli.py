"""Tests for the roadbuilder command line."""
import json

import pytest

from roadbuilder.cli import main

PNG = "data:image/png;base64,iVBORw0KGgo="


def _document():
    return {
        "nodes": [
            {"id": "node-0001", "x": 0, "y": 0, "connectedRoadIds": ["road-0001"]},
            {"id": "node-0002", "x": 30, "y": 40, "connectedRoadIds": ["road-0001"]},
        ],
        "roads": [
            {
                "id": "road-0001",
                "start": {"x": 0, "y": 0},
                "end": {"x": 30, "y": 40},
                "startNodeId": "node-0001",
                "endNodeId": "node-0002",
                "type": "straight",
                "width": 15,
            }
        ],
        "backgroundImages": [
            {"id": "bg-0001", "src": PNG, "width": 10, "height": 10},
            {"id": "bg-0002", "src": "file:///tmp/photo.png", "width": 10, "height": 10},
        ],
    }


@pytest.fixture
def map_file(tmp_path):
    path = tmp_path / "map.json"
    path.write_text(json.dumps(_document()), encoding="utf-8")
    return path


def test_summary(map_file, capsys):
    assert main(["--meters-per-pixel", "1", "summary", str(map_file)]) == 0
    out = capsys.readouterr().out
    assert "nodes:    2" in out
    assert "roads:    1 (50.00 m)" in out
    assert "images:   2" in out


def test_summary_uses_config_file(map_file, tmp_path, capsys):
    config = tmp_path / "settings.json"
    config.write_text(json.dumps({"meters_per_pixel": 2.0}), encoding="utf-8")
    assert main(["--config", str(config), "summary", str(map_file)]) == 0
    assert "(100.00 m)" in capsys.readouterr().out


def test_check_ok(map_file, capsys):
    assert main(["check", str(map_file)]) == 0
    assert "OK" in capsys.readouterr().out


def test_check_reports_broken_references(tmp_path, capsys):
    document = _document()
    document["nodes"][1]["connectedRoadIds"] = []
    path = tmp_path / "broken.json"
    path.write_text(json.dumps(document), encoding="utf-8")
    assert main(["check", str(path)]) == 1
    assert "node-0002" in capsys.readouterr().out


def test_malformed_file_exits_2(tmp_path, capsys):
    path = tmp_path / "bad.json"
    path.write_text("{nope", encoding="utf-8")
    assert main(["summary", str(path)]) == 2
    assert "error" in capsys.readouterr().err


def test_missing_file_exits_2(tmp_path):
    assert main(["check", str(tmp_path / "absent.json")]) == 2


def test_sanitize_strips_external_sources(map_file, tmp_path, capsys):
    out_path = tmp_path / "out" / "clean.json"
    assert main(["sanitize", str(map_file), str(out_path)]) == 0
    assert "stripped 1 external image source(s)" in capsys.readouterr().out
    data = json.loads(out_path.read_text(encoding="utf-8"))
    assert [image["src"] for image in data["backgroundImages"]] == [PNG, ""]
