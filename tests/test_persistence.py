"""Tests for roadbuilder/persistence.py and the document schema."""
import json

import pytest

from roadbuilder.backgrounds import BackgroundLayerManager
from roadbuilder.model import IdAllocator, PolygonVertex, RoadType
from roadbuilder.persistence import (
    DEFAULT_FILENAME,
    ParseError,
    default_filename,
    load_canvas_state,
    read_canvas_file,
    save_canvas_state,
    state_from_stores,
    stores_from_state,
    write_canvas_file,
)
from roadbuilder.polygons import PolygonStore
from roadbuilder.topology import TopologyStore
from roadbuilder.view import ViewTransform

PNG = "data:image/png;base64,iVBORw0KGgo="


@pytest.fixture
def stores():
    ids = IdAllocator()
    topology = TopologyStore(ids)
    polygons = PolygonStore(ids)
    backgrounds = BackgroundLayerManager(ids)
    view = ViewTransform(pan_offset=(12.0, -3.0), zoom=1.5)

    a = topology.add_node((0.0, 0.0))
    b = topology.add_node((100.0, 0.0))
    c = topology.add_node((100.0, 80.0))
    topology.connect(a.id, b.id, name="Main St")
    topology.connect(b.id, c.id, RoadType.CUBIC, width=8.0)
    vertices = [
        PolygonVertex.straight(ids.next("vtx"), x, y) for x, y in [(0, 0), (40, 0), (40, 30)]
    ]
    polygons.add(vertices, fill_color="#ff0000", stroke_color="#000000", opacity=0.5, meters_per_pixel=0.1)
    backgrounds.add(PNG, 320, 200, name="aerial", opacity=0.4)
    return topology, polygons, backgrounds, view


def test_round_trip(stores):
    state = state_from_stores(*stores)
    loaded = load_canvas_state(save_canvas_state(state))
    assert loaded.model_dump() == state.model_dump()


def test_output_uses_camel_case_keys(stores):
    data = json.loads(save_canvas_state(state_from_stores(*stores)))
    assert set(data) == {"nodes", "roads", "polygons", "backgroundImages", "panOffset", "zoom"}
    assert "connectedRoadIds" in data["nodes"][0]
    assert data["roads"][0]["startNodeId"] == "node-0001"
    assert data["roads"][1]["type"] == "cubic"
    assert len(data["roads"][1]["controlPoints"]) == 2
    # Optional fields that are unset are omitted.
    assert "controlPoints" not in data["roads"][0]
    assert data["polygons"][0]["fillColor"] == "#ff0000"
    assert data["panOffset"] == {"x": 12.0, "y": -3.0}


def test_external_sources_are_stripped(stores):
    topology, polygons, backgrounds, view = stores
    backgrounds.add("file:///home/me/secret.png", 10, 10)
    backgrounds.add("https://example.com/tile.png", 10, 10)
    data = json.loads(save_canvas_state(state_from_stores(*stores)))
    assert [image["src"] for image in data["backgroundImages"]] == [PNG, "", ""]
    # Only the saved copy is stripped.
    assert [image.src for image in backgrounds.images.values()][1] == "file:///home/me/secret.png"


@pytest.mark.parametrize(
    "text",
    [
        "{not json",
        '{"nodes": [{"id": "node-0001"}]}',
        '{"polygons": [{"id": "poly-0001", "points": []}]}',
        '{"zoom": 0}',
        '{"roads": [{"id": "road-0001", "start": {"x": 0, "y": 0}, "end": {"x": 1, "y": 1}, "type": "spiral"}]}',
    ],
)
def test_bad_documents_raise_parse_error(text):
    with pytest.raises(ParseError):
        load_canvas_state(text)


def test_parse_error_is_value_error():
    assert issubclass(ParseError, ValueError)


def test_missing_collections_default_to_empty():
    state = load_canvas_state("{}")
    assert state.nodes == [] and state.roads == []
    assert state.zoom == 1.0


def test_legacy_road_types_load():
    text = json.dumps(
        {
            "roads": [
                {"id": "road-0001", "start": {"x": 0, "y": 0}, "end": {"x": 10, "y": 0}, "type": "curved"},
                {
                    "id": "road-0002",
                    "start": {"x": 0, "y": 0},
                    "end": {"x": 10, "y": 0},
                    "type": "bezier",
                    "controlPoints": [{"x": 2, "y": 5}, {"x": 8, "y": 5}],
                },
            ]
        }
    )
    state = load_canvas_state(text)
    assert [r.type for r in state.roads] == [RoadType.QUADRATIC, RoadType.CUBIC]


def test_stores_from_state_reseeds_ids():
    text = json.dumps(
        {
            "nodes": [
                {"id": "node-0007", "x": 0, "y": 0, "connectedRoadIds": ["road-0003"]},
                {"id": "node-0002", "x": 10, "y": 0, "connectedRoadIds": ["road-0003"]},
            ],
            "roads": [
                {
                    "id": "road-0003",
                    "start": {"x": 0, "y": 0},
                    "end": {"x": 10, "y": 0},
                    "startNodeId": "node-0007",
                    "endNodeId": "node-0002",
                }
            ],
        }
    )
    topology, polygons, backgrounds, view = stores_from_state(load_canvas_state(text))
    assert topology.check_integrity() == []
    assert topology.add_node((5.0, 5.0)).id == "node-0008"
    assert topology.ids.next("road") == "road-0004"
    assert polygons.ids is topology.ids is backgrounds.ids


def test_vertex_handles_default_to_vertex():
    text = json.dumps(
        {
            "polygons": [
                {
                    "id": "poly-0001",
                    "points": [
                        {"id": "vtx-0001", "x": 0, "y": 0},
                        {"id": "vtx-0002", "x": 10, "y": 0, "cp1": {"x": 8, "y": -2}},
                        {"id": "vtx-0003", "x": 10, "y": 10},
                    ],
                }
            ]
        }
    )
    _, polygons, _, _ = stores_from_state(load_canvas_state(text))
    points = polygons.get("poly-0001").points
    assert points[0].cp1 == (0.0, 0.0) and points[0].cp2 == (0.0, 0.0)
    assert points[1].cp1 == (8.0, -2.0) and points[1].cp2 == (10.0, 0.0)


def test_view_state_is_clamped_on_load():
    _, _, _, view = stores_from_state(load_canvas_state('{"zoom": 40, "panOffset": {"x": 3, "y": 4}}'))
    assert view.zoom == 5.0
    assert view.pan_offset == (3.0, 4.0)


def test_file_round_trip(tmp_path, stores):
    path = write_canvas_file(tmp_path / "map.json", state_from_stores(*stores))
    state = read_canvas_file(path)
    assert len(state.roads) == 2
    assert state.background_images[0].name == "aerial"


def test_default_filename():
    assert default_filename("Main Street v2") == "main-street-v2.json"
    assert default_filename("") == DEFAULT_FILENAME
    assert default_filename(None) == DEFAULT_FILENAME
    assert default_filename("!!!") == DEFAULT_FILENAME


def test_cubic_road_with_missing_handles_is_padded():
    text = json.dumps(
        {
            "nodes": [
                {"id": "n1", "x": 0, "y": 0, "connectedRoadIds": ["r1"]},
                {"id": "n2", "x": 100, "y": 0, "connectedRoadIds": ["r1"]},
            ],
            "roads": [
                {
                    "id": "r1",
                    "start": {"x": 0, "y": 0},
                    "end": {"x": 100, "y": 0},
                    "startNodeId": "n1",
                    "endNodeId": "n2",
                    "type": "cubic",
                    "controlPoints": [{"x": 10, "y": -30}],
                }
            ],
        }
    )
    topology, _, _, _ = stores_from_state(load_canvas_state(text))
    assert topology.road("r1").control_points == [(10.0, -30.0), (100.0, 0.0)]
    assert topology.check_integrity() == []


def test_non_utf8_file_raises_parse_error(tmp_path):
    path = tmp_path / "binary.json"
    path.write_bytes(b"\xff\xfe\x00{")
    with pytest.raises(ParseError):
        read_canvas_file(path)
