"""Tests for the build and polygon sessions in roadbuilder/sessions.py."""
import pytest

from roadbuilder.model import RoadType
from roadbuilder.osnap import resolve_snap
from roadbuilder.sessions import (
    BuildSession,
    PolygonSession,
    PolygonStyle,
    SessionPhase,
    add_build_point,
    cancel_build,
    cancel_polygon,
    click_polygon_point,
    complete_build,
    complete_polygon,
    nearest_staged_point,
    preview_polygon_phase,
    pull_build_handle,
    pull_polygon_handle,
    remove_last_build_point,
    remove_last_polygon_point,
    reuse_build_point,
    stage_build_point,
    start_build,
)


def _stage(session, topology, *points, road_type=RoadType.STRAIGHT):
    for p in points:
        snap = resolve_snap(p, topology, 20.0, exclude_node_ids=session.snap_exclusions())
        session = stage_build_point(session, snap, road_type, 15.0)
    return session


# --- build session ---

def test_three_points_make_two_roads(topology):
    session = _stage(BuildSession(), topology, (0.0, 0.0), (10.0, 0.0), (20.0, 0.0))
    assert session.phase == SessionPhase.ACTIVE
    session, roads = complete_build(session, topology)
    assert session.phase == SessionPhase.IDLE
    assert session.nodes == ()
    assert len(roads) == 2
    assert (roads[0].start, roads[0].end) == ((0.0, 0.0), (10.0, 0.0))
    assert (roads[1].start, roads[1].end) == ((10.0, 0.0), (20.0, 0.0))
    assert roads[0].end_node_id == roads[1].start_node_id
    assert len(topology.nodes) == 3
    assert topology.check_integrity() == []


def test_n_points_make_n_minus_one_roads(topology):
    points = [(float(40 * i), float(i % 2) * 40.0) for i in range(6)]
    session, roads = complete_build(_stage(BuildSession(), topology, *points), topology)
    assert len(roads) == 5


def test_single_point_does_not_complete(topology):
    session = _stage(BuildSession(), topology, (0.0, 0.0))
    after, roads = complete_build(session, topology)
    assert roads == []
    assert after is session
    assert topology.nodes == {}


def test_staging_never_writes_the_store(topology, straight_road):
    session = _stage(BuildSession(), topology, (50.0, -60.0), (50.0, 3.0), (200.0, 200.0))
    assert len(topology.nodes) == 2
    assert len(topology.roads) == 1
    assert session.nodes[1].road_id == straight_road[2].id


def test_existing_node_is_reused(topology):
    existing = topology.add_node((0.0, 0.0))
    session = _stage(BuildSession(), topology, (3.0, 2.0), (100.0, 0.0))
    assert session.nodes[0].node_id == existing.id
    _, roads = complete_build(session, topology)
    assert roads[0].start_node_id == existing.id
    assert len(topology.nodes) == 2


def test_road_snap_splits_on_commit(topology, straight_road):
    session = _stage(BuildSession(), topology, (50.0, -60.0), (50.0, 3.0))
    _, roads = complete_build(session, topology)
    assert len(roads) == 1
    junction = topology.node(roads[0].end_node_id)
    assert junction.pos == pytest.approx((50.0, 0.0))
    assert len(topology.roads) == 3
    assert len(junction.connected_road_ids) == 3
    assert topology.check_integrity() == []


def test_two_snaps_on_one_road_both_split(topology, straight_road):
    session = _stage(BuildSession(), topology, (30.0, 3.0), (70.0, 3.0))
    assert session.nodes[0].road_id == session.nodes[1].road_id
    _, roads = complete_build(session, topology)
    assert len(roads) == 1
    assert len(topology.nodes) == 4
    # Three pieces of the old road plus the new one
    assert len(topology.roads) == 4
    assert topology.check_integrity() == []


def test_remove_last_returns_to_idle(topology):
    session = _stage(BuildSession(), topology, (0.0, 0.0), (50.0, 0.0))
    session = remove_last_build_point(session)
    assert session.phase == SessionPhase.ACTIVE and len(session.nodes) == 1
    session = remove_last_build_point(session)
    assert session.phase == SessionPhase.IDLE
    assert topology.nodes == {}


def test_cancel_discards_without_writes(topology):
    session = _stage(BuildSession(), topology, (0.0, 0.0), (50.0, 0.0))
    session = cancel_build(session)
    assert session.phase == SessionPhase.IDLE
    assert session.last_phase == SessionPhase.CANCELLED
    assert topology.nodes == {} and topology.roads == {}


def test_duplicate_point_is_ignored(topology):
    session = start_build(BuildSession(), resolve_snap((0.0, 0.0), topology, 20.0))
    again = add_build_point(session, resolve_snap((0.0, 0.0), topology, 20.0))
    assert again is session


def test_pulled_handles_become_cubic_controls(topology):
    session = _stage(BuildSession(), topology, (0.0, 0.0), road_type=RoadType.CUBIC)
    session = pull_build_handle(session, (0.0, 20.0))
    assert session.nodes[0].cp1 == (0.0, -20.0)
    session = _stage(session, topology, (30.0, 0.0))
    session = pull_build_handle(session, (40.0, 20.0))
    assert session.nodes[1].cp1 == (20.0, -20.0)
    _, roads = complete_build(session, topology)
    assert roads[0].type == RoadType.CUBIC
    assert roads[0].control_points == [(0.0, 20.0), (20.0, -20.0)]


def test_cubic_without_handles_uses_defaults(topology):
    session = _stage(BuildSession(), topology, (0.0, 0.0), (100.0, 0.0), road_type=RoadType.CUBIC)
    _, roads = complete_build(session, topology)
    assert roads[0].control_points == [(0.0, -50.0), (100.0, 50.0)]


# --- polygon session ---

def _click_all(session, store, points, zoom=1.0):
    polygon = None
    for p in points:
        session, polygon = click_polygon_point(session, p, zoom, store, 1.0)
    return session, polygon


def test_square_closes_with_area_100(polygons):
    # Zoomed in so the 15px close radius (1.5 units) does not swallow the last corner.
    session, polygon = _click_all(
        PolygonSession(), polygons, [(0.0, 0.0), (10.0, 0.0), (10.0, 10.0), (0.0, 10.0)], zoom=10.0
    )
    assert polygon is None and len(session.points) == 4
    session, polygon = click_polygon_point(session, (0.5, 0.5), 10.0, polygons, 1.0)
    assert polygon is not None
    assert polygon.area == pytest.approx(100.0)
    assert len(polygon.points) == 4
    assert all(v.cp1 == v.pos and v.cp2 == v.pos for v in polygon.points)
    assert session.phase == SessionPhase.IDLE
    assert session.last_phase == SessionPhase.COMMITTED
    assert list(polygons.polygons) == [polygon.id]


def test_close_radius_shrinks_when_zoomed_in(polygons):
    corners = [(0.0, 0.0), (100.0, 0.0), (100.0, 100.0), (0.0, 100.0)]
    session, _ = _click_all(PolygonSession(), polygons, corners, zoom=2.0)
    session, polygon = click_polygon_point(session, (10.0, 0.0), 2.0, polygons, 1.0)
    assert polygon is None
    assert len(session.points) == 5


def test_two_vertices_never_close(polygons):
    session, _ = _click_all(PolygonSession(), polygons, [(0.0, 0.0), (50.0, 0.0)])
    session, polygon = click_polygon_point(session, (1.0, 0.0), 1.0, polygons, 1.0)
    assert polygon is None
    assert len(session.points) == 3


def test_preview_reports_closing(polygons):
    session, _ = _click_all(PolygonSession(), polygons, [(0.0, 0.0), (50.0, 0.0), (50.0, 50.0)])
    assert preview_polygon_phase(session, (2.0, 2.0), 1.0) == SessionPhase.CLOSING
    assert preview_polygon_phase(session, (30.0, 30.0), 1.0) == SessionPhase.ACTIVE


def test_complete_polygon_needs_three(polygons):
    session, _ = _click_all(PolygonSession(), polygons, [(0.0, 0.0), (50.0, 0.0)])
    after, polygon = complete_polygon(session, polygons, 1.0)
    assert polygon is None and after is session
    session, _ = _click_all(session, polygons, [(50.0, 50.0)])
    after, polygon = complete_polygon(session, polygons, 0.1)
    assert polygon.area == pytest.approx(1250.0 * 0.01)
    assert after.phase == SessionPhase.IDLE


def test_polygon_cancel_and_remove_last(polygons):
    session, _ = _click_all(PolygonSession(), polygons, [(0.0, 0.0), (50.0, 0.0)])
    session = remove_last_polygon_point(session)
    assert len(session.points) == 1
    session = cancel_polygon(session)
    assert session.phase == SessionPhase.IDLE
    assert session.last_phase == SessionPhase.CANCELLED
    assert polygons.polygons == {}


def test_pull_polygon_handle_mirrors(polygons):
    session, _ = _click_all(PolygonSession(), polygons, [(10.0, 10.0)])
    session = pull_polygon_handle(session, (20.0, 10.0))
    vertex = session.points[-1]
    assert vertex.cp2 == (20.0, 10.0)
    assert vertex.cp1 == (0.0, 10.0)


def test_session_style_carries_into_polygon(polygons):
    style = PolygonStyle("#ff0000", "#00ff00", 0.5)
    session, _ = click_polygon_point(PolygonSession(), (0.0, 0.0), 1.0, polygons, 1.0, style)
    session, _ = _click_all(session, polygons, [(10.0, 0.0), (10.0, 10.0)])
    _, polygon = complete_polygon(session, polygons, 1.0)
    assert (polygon.fill_color, polygon.stroke_color, polygon.opacity) == ("#ff0000", "#00ff00", 0.5)


def test_revisiting_a_staged_point_closes_the_loop(topology):
    session = _stage(BuildSession(), topology, (0.0, 0.0), (100.0, 0.0), (100.0, 100.0))
    index = nearest_staged_point(session, (2.0, 1.0), 20.0)
    assert index == 0
    session = reuse_build_point(session, index)
    assert session.nodes[-1].pos == (0.0, 0.0)
    assert topology.nodes == {}
    _, roads = complete_build(session, topology)
    assert len(roads) == 3
    assert len(topology.nodes) == 3
    assert roads[-1].end_node_id == roads[0].start_node_id
    assert topology.check_integrity() == []


def test_newest_staged_point_is_not_a_snap_target(topology):
    session = _stage(BuildSession(), topology, (0.0, 0.0), (100.0, 0.0))
    assert nearest_staged_point(session, (98.0, 0.0), 20.0) is None
    assert nearest_staged_point(session, (2.0, 0.0), 20.0) == 0


def test_reused_road_snap_splits_once(topology, straight_road):
    session = _stage(BuildSession(), topology, (50.0, 3.0), (50.0, 100.0), (150.0, 100.0))
    session = reuse_build_point(session, 0)
    _, roads = complete_build(session, topology)
    assert len(roads) == 3
    # One junction on the old road, plus two new points.
    assert len(topology.nodes) == 5
    assert topology.check_integrity() == []
