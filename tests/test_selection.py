"""Tests for hit priority and dragging in roadbuilder/selection.py."""
import pytest

from roadbuilder.model import RoadType
from roadbuilder.selection import (
    HitKind,
    Selection,
    begin_drag,
    drag_to,
    hit_test,
    selection_for_hit,
)


def test_node_wins_over_unselected_polygon(topology, polygons, square):
    node = topology.add_node((50.0, 50.0))
    hit = hit_test((51.0, 50.0), 1.0, Selection(), topology, polygons)
    assert hit.kind == HitKind.NODE
    assert hit.node_id == node.id


def test_selected_polygon_body_wins_over_node(topology, polygons, square):
    topology.add_node((50.0, 50.0))
    hit = hit_test((51.0, 50.0), 1.0, Selection(polygon_id=square.id), topology, polygons)
    assert hit.kind == HitKind.POLYGON_BODY


def test_vertex_of_selected_polygon(topology, polygons, square):
    hit = hit_test((1.0, 1.0), 1.0, Selection(polygon_id=square.id), topology, polygons)
    assert hit.kind == HitKind.VERTEX
    assert hit.vertex_index == 0
    selection = selection_for_hit(hit, Selection(polygon_id=square.id))
    assert selection == Selection(polygon_id=square.id, vertex_index=0)


def test_handle_of_selected_vertex(topology, polygons, square):
    square.points[0].cp2 = (-20.0, -20.0)
    selection = Selection(polygon_id=square.id, vertex_index=0)
    hit = hit_test((-19.0, -20.0), 1.0, selection, topology, polygons)
    assert hit.kind == HitKind.HANDLE
    assert hit.handle == "cp2"
    assert selection_for_hit(hit, selection) == selection


def test_handle_of_selected_node(topology, polygons):
    a = topology.add_node((0.0, 0.0))
    b = topology.add_node((100.0, 0.0))
    road = topology.connect(a.id, b.id, RoadType.CUBIC)
    hit = hit_test((0.0, -48.0), 1.0, Selection(node_id=a.id), topology, polygons)
    assert hit.kind == HitKind.HANDLE
    assert (hit.road_id, hit.handle) == (road.id, 0)

    drag = begin_drag(hit, (0.0, -48.0))
    drag_to(drag, (10.0, -30.0), topology, polygons, 1.0)
    assert road.control_points[0] == (10.0, -30.0)
    assert road.control_points[1] == (100.0, 50.0)
    assert a.pos == (0.0, 0.0)


def test_topmost_polygon_is_picked(topology, polygons, square, square_factory):
    upper = square_factory(polygons, size=50.0, origin=(25.0, 25.0))
    hit = hit_test((40.0, 40.0), 1.0, Selection(), topology, polygons)
    assert hit.kind == HitKind.POLYGON
    assert hit.polygon_id == upper.id
    hit = hit_test((90.0, 90.0), 1.0, Selection(), topology, polygons)
    assert hit.polygon_id == square.id


def test_road_hit_and_empty_space(topology, polygons, straight_road):
    _, _, road = straight_road
    hit = hit_test((50.0, 5.0), 1.0, Selection(), topology, polygons)
    assert hit.kind == HitKind.ROAD and hit.road_id == road.id
    assert selection_for_hit(hit, Selection()) == Selection(road_id=road.id)

    miss = hit_test((50.0, 60.0), 1.0, Selection(road_id=road.id), topology, polygons)
    assert miss.kind == HitKind.NONE
    assert selection_for_hit(miss, Selection(road_id=road.id)).is_empty


def test_road_is_not_draggable(topology, polygons, straight_road):
    hit = hit_test((50.0, 5.0), 1.0, Selection(), topology, polygons)
    assert begin_drag(hit, (50.0, 5.0)) is None


def test_node_drag_moves_bound_roads(topology, polygons, straight_road):
    a, _, road = straight_road
    hit = hit_test((0.0, 0.0), 1.0, Selection(), topology, polygons)
    drag = begin_drag(hit, (0.0, 0.0))
    drag = drag_to(drag, (10.0, 10.0), topology, polygons, 1.0)
    drag_to(drag, (20.0, -5.0), topology, polygons, 1.0)
    assert a.pos == (20.0, -5.0)
    assert road.start == (20.0, -5.0)


def test_vertex_drag_carries_its_handles(topology, polygons, square):
    vertex = square.points[2]
    vertex.cp1 = (90.0, 110.0)
    selection = Selection(polygon_id=square.id)
    hit = hit_test((100.0, 100.0), 1.0, selection, topology, polygons)
    assert hit.kind == HitKind.VERTEX and hit.vertex_index == 2
    drag_to(begin_drag(hit, (100.0, 100.0)), (120.0, 100.0), topology, polygons, 1.0)
    assert vertex.pos == (120.0, 100.0)
    assert vertex.cp1 == (110.0, 110.0)
    assert square.points[0].pos == (0.0, 0.0)
    assert square.area == pytest.approx(11000.0)


def test_body_drag_translates_everything(topology, polygons, square):
    square.points[1].cp2 = (110.0, 10.0)
    area = square.area
    hit = hit_test((50.0, 50.0), 1.0, Selection(polygon_id=square.id), topology, polygons)
    drag = begin_drag(hit, (50.0, 50.0))
    drag = drag_to(drag, (55.0, 52.0), topology, polygons, 1.0)
    drag = drag_to(drag, (60.0, 55.0), topology, polygons, 1.0)
    assert drag.total_delta == (10.0, 5.0)
    assert square.positions() == [(10.0, 5.0), (110.0, 5.0), (110.0, 105.0), (10.0, 105.0)]
    assert square.points[1].cp2 == (120.0, 15.0)
    assert square.area == pytest.approx(area)


def test_pick_radius_is_screen_constant(topology, polygons):
    topology.add_node((0.0, 0.0))
    # 15px at zoom 0.5 covers 30 world units
    assert hit_test((25.0, 0.0), 0.5, Selection(), topology, polygons).kind == HitKind.NODE
    assert hit_test((25.0, 0.0), 1.0, Selection(), topology, polygons).kind == HitKind.NONE


def test_short_handle_list_is_skipped(topology, polygons):
    a = topology.add_node((0.0, 0.0))
    b = topology.add_node((100.0, 0.0))
    road = topology.connect(a.id, b.id, RoadType.CUBIC)
    road.control_points = [(10.0, -30.0)]
    hit = hit_test((100.0, 0.0), 1.0, Selection(node_id=b.id), topology, polygons)
    assert hit.kind == HitKind.NODE
    assert hit.node_id == b.id
