"""Construction sessions for road chains and polygons.

Sessions are frozen values. Every transition returns a new session and only
the commit transitions (:func:`complete_build`, :func:`complete_polygon` and a
closing :func:`click_polygon_point`) write to a store. Staged points are
plain value types, never store entities, so abandoning a session leaves
nothing behind.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from enum import Enum
from typing import List, Optional, Tuple

from .intersect2d import Point, dist, mirror
from .model import Node, Polygon, PolygonVertex, Road, RoadType
from .osnap import SnapKind, SnapResult
from .polygons import PolygonStore
from .topology import TopologyStore

logger = logging.getLogger(__name__)

CLOSE_RADIUS_PX = 15.0
# Distance used to find the surviving half of a road that an earlier split
# in the same commit already replaced.
REMATCH_TOLERANCE = 1e-3


class SessionPhase(str, Enum):
    IDLE = "idle"
    ACTIVE = "active"
    COMPLETING = "completing"
    CANCELLED = "cancelled"
    CLOSING = "closing"
    COMMITTED = "committed"


# ---------------------------------------------------------------------------
# Road building


@dataclass(frozen=True)
class StagedPoint:
    """A placement waiting for commit.

    ``node_id`` reuses an existing node; ``road_id`` asks for that road to be
    split at ``(x, y)`` when the session completes. ``same_as`` is the index
    of an earlier staged point this one revisits; both commit as one node.
    """

    x: float
    y: float
    node_id: Optional[str] = None
    road_id: Optional[str] = None
    cp1: Optional[Point] = None
    cp2: Optional[Point] = None
    same_as: Optional[int] = None

    @property
    def pos(self) -> Point:
        return (self.x, self.y)

    @classmethod
    def from_snap(cls, snap: SnapResult) -> "StagedPoint":
        x, y = float(snap.point[0]), float(snap.point[1])
        if snap.kind == SnapKind.NODE:
            return cls(x, y, node_id=snap.node_id)
        if snap.kind == SnapKind.ROAD:
            return cls(x, y, road_id=snap.road_id)
        return cls(x, y)


@dataclass(frozen=True)
class BuildSession:
    nodes: Tuple[StagedPoint, ...] = ()
    phase: SessionPhase = SessionPhase.IDLE
    road_type: RoadType = RoadType.STRAIGHT
    road_width: float = 15.0
    last_phase: Optional[SessionPhase] = None

    @property
    def is_active(self) -> bool:
        return self.phase == SessionPhase.ACTIVE

    @property
    def last_node_id(self) -> Optional[str]:
        return self.nodes[-1].node_id if self.nodes else None

    def snap_exclusions(self) -> Tuple[str, ...]:
        last = self.last_node_id
        return (last,) if last else ()


def _idle_like(session: BuildSession, last_phase: SessionPhase) -> BuildSession:
    return BuildSession(road_type=session.road_type, road_width=session.road_width, last_phase=last_phase)


def start_build(
    session: BuildSession,
    snap: SnapResult,
    road_type: RoadType = RoadType.STRAIGHT,
    road_width: float = 15.0,
) -> BuildSession:
    """Open a session seeded with ``snap``. An active session is returned unchanged."""
    if session.is_active:
        logger.debug("start_build: session already active")
        return session
    if road_width <= 0:
        raise ValueError(f"Road width must be positive, got {road_width}")
    return BuildSession(
        nodes=(StagedPoint.from_snap(snap),),
        phase=SessionPhase.ACTIVE,
        road_type=RoadType(road_type),
        road_width=float(road_width),
    )


def add_build_point(session: BuildSession, snap: SnapResult) -> BuildSession:
    if not session.is_active:
        return session
    staged = StagedPoint.from_snap(snap)
    last = session.nodes[-1]
    if staged.node_id is not None and staged.node_id == last.node_id:
        return session
    if dist(staged.pos, last.pos) <= 1e-9:
        return session
    return replace(session, nodes=session.nodes + (staged,))


def nearest_staged_point(session: BuildSession, pos: Point, max_distance: float) -> Optional[int]:
    """Index of the closest earlier staged point within ``max_distance``.

    The newest point is never a candidate, matching the node exclusion used
    for store snaps while building.
    """
    if not session.is_active:
        return None
    best: Optional[int] = None
    best_d = float(max_distance)
    for index, staged in enumerate(session.nodes[:-1]):
        if staged.same_as is not None:
            continue
        d = dist(pos, staged.pos)
        if d <= best_d:
            best = index
            best_d = d
    return best


def reuse_build_point(session: BuildSession, index: int) -> BuildSession:
    """Stage a revisit of point ``index``, e.g. to close a loop of new points."""
    if not session.is_active or not 0 <= index < len(session.nodes) - 1:
        return session
    target = session.nodes[index]
    root = target.same_as if target.same_as is not None else index
    last = session.nodes[-1]
    if last.same_as == root:
        return session
    origin = session.nodes[root]
    staged = StagedPoint(origin.x, origin.y, node_id=origin.node_id, same_as=root)
    return replace(session, nodes=session.nodes + (staged,))


def stage_build_point(
    session: BuildSession,
    snap: SnapResult,
    road_type: RoadType = RoadType.STRAIGHT,
    road_width: float = 15.0,
) -> BuildSession:
    if session.is_active:
        return add_build_point(session, snap)
    return start_build(session, snap, road_type, road_width)


def remove_last_build_point(session: BuildSession) -> BuildSession:
    if not session.is_active:
        return session
    remaining = session.nodes[:-1]
    if not remaining:
        return _idle_like(session, SessionPhase.IDLE)
    return replace(session, nodes=remaining)


def cancel_build(session: BuildSession) -> BuildSession:
    if not session.is_active:
        return session
    logger.debug(f"Cancelled road session with {len(session.nodes)} staged points")
    return _idle_like(session, SessionPhase.CANCELLED)


def pull_build_handle(session: BuildSession, pos: Point) -> BuildSession:
    """Drag the outgoing handle of the newest point; the incoming one mirrors it."""
    if not session.is_active:
        return session
    last = session.nodes[-1]
    handle = (float(pos[0]), float(pos[1]))
    updated = replace(last, cp2=handle, cp1=mirror(last.pos, handle))
    return replace(session, nodes=session.nodes[:-1] + (updated,))


def _materialize(staged: StagedPoint, topology: TopologyStore) -> Node:
    if staged.node_id is not None:
        existing = topology.node(staged.node_id)
        if existing is not None:
            return existing
    if staged.road_id is not None:
        road_id: Optional[str] = staged.road_id
        if road_id not in topology.roads:
            hit = topology.nearest_straight_road(staged.pos, REMATCH_TOLERANCE)
            road_id = hit[0].id if hit else None
        if road_id is not None:
            junction = topology.split_road(road_id, staged.pos)
            if junction is not None:
                return junction
    return topology.add_node(staged.pos)


def complete_build(session: BuildSession, topology: TopologyStore) -> Tuple[BuildSession, List[Road]]:
    """Commit the staged chain: one road per consecutive pair of points."""
    if not session.is_active or len(session.nodes) < 2:
        return session, []
    completing = replace(session, phase=SessionPhase.COMPLETING)
    nodes: List[Node] = []
    for staged in completing.nodes:
        if staged.same_as is not None and staged.same_as < len(nodes):
            nodes.append(nodes[staged.same_as])
        else:
            nodes.append(_materialize(staged, topology))
    roads: List[Road] = []
    for i in range(len(nodes) - 1):
        a, b = nodes[i], nodes[i + 1]
        if a.id == b.id:
            logger.debug(f"complete_build: skipping zero-length segment at {a.id}")
            continue
        controls = None
        if completing.road_type == RoadType.CUBIC:
            out_handle = completing.nodes[i].cp2
            in_handle = completing.nodes[i + 1].cp1
            if out_handle is not None and in_handle is not None:
                controls = [out_handle, in_handle]
        road = topology.connect(a.id, b.id, completing.road_type, completing.road_width, control_points=controls)
        if road is not None:
            roads.append(road)
    logger.info(f"Committed {len(roads)} {completing.road_type.value} roads from {len(nodes)} points")
    return _idle_like(completing, SessionPhase.COMPLETING), roads


# ---------------------------------------------------------------------------
# Polygon building


@dataclass(frozen=True)
class StagedVertex:
    x: float
    y: float
    cp1: Point
    cp2: Point

    @property
    def pos(self) -> Point:
        return (self.x, self.y)

    @classmethod
    def at(cls, pos: Point) -> "StagedVertex":
        x, y = float(pos[0]), float(pos[1])
        return cls(x, y, (x, y), (x, y))

    def to_vertex(self, vertex_id: str) -> PolygonVertex:
        return PolygonVertex(id=vertex_id, x=self.x, y=self.y, cp1=self.cp1, cp2=self.cp2)


@dataclass(frozen=True)
class PolygonStyle:
    fill_color: str = "#3b82f6"
    stroke_color: str = "#1e40af"
    opacity: float = 0.3


@dataclass(frozen=True)
class PolygonSession:
    points: Tuple[StagedVertex, ...] = ()
    phase: SessionPhase = SessionPhase.IDLE
    fill_color: str = "#3b82f6"
    stroke_color: str = "#1e40af"
    opacity: float = 0.3
    last_phase: Optional[SessionPhase] = None

    @property
    def is_active(self) -> bool:
        return self.phase == SessionPhase.ACTIVE

    @property
    def style(self) -> PolygonStyle:
        return PolygonStyle(self.fill_color, self.stroke_color, self.opacity)


def _polygon_idle(session: PolygonSession, last_phase: SessionPhase) -> PolygonSession:
    return PolygonSession(
        fill_color=session.fill_color,
        stroke_color=session.stroke_color,
        opacity=session.opacity,
        last_phase=last_phase,
    )


def would_close(session: PolygonSession, pos: Point, zoom: float) -> bool:
    if not session.is_active or len(session.points) < 3:
        return False
    return dist(pos, session.points[0].pos) <= CLOSE_RADIUS_PX / max(float(zoom), 1e-9)


def preview_polygon_phase(session: PolygonSession, pos: Point, zoom: float) -> SessionPhase:
    """Phase a click at ``pos`` would lead to; ``CLOSING`` over the first vertex."""
    if would_close(session, pos, zoom):
        return SessionPhase.CLOSING
    return session.phase


def click_polygon_point(
    session: PolygonSession,
    pos: Point,
    zoom: float,
    store: PolygonStore,
    meters_per_pixel: float,
    style: Optional[PolygonStyle] = None,
) -> Tuple[PolygonSession, Optional[Polygon]]:
    if not session.is_active:
        style = style or session.style
        started = PolygonSession(
            points=(StagedVertex.at(pos),),
            phase=SessionPhase.ACTIVE,
            fill_color=style.fill_color,
            stroke_color=style.stroke_color,
            opacity=style.opacity,
        )
        return started, None
    if would_close(session, pos, zoom):
        return complete_polygon(replace(session, phase=SessionPhase.CLOSING), store, meters_per_pixel)
    return replace(session, points=session.points + (StagedVertex.at(pos),)), None


def complete_polygon(
    session: PolygonSession, store: PolygonStore, meters_per_pixel: float
) -> Tuple[PolygonSession, Optional[Polygon]]:
    if session.phase not in (SessionPhase.ACTIVE, SessionPhase.CLOSING) or len(session.points) < 3:
        return session, None
    vertices = [staged.to_vertex(store.ids.next("vtx")) for staged in session.points]
    polygon = store.add(
        vertices,
        fill_color=session.fill_color,
        stroke_color=session.stroke_color,
        opacity=session.opacity,
        meters_per_pixel=meters_per_pixel,
    )
    return _polygon_idle(session, SessionPhase.COMMITTED), polygon


def remove_last_polygon_point(session: PolygonSession) -> PolygonSession:
    if not session.is_active:
        return session
    remaining = session.points[:-1]
    if not remaining:
        return _polygon_idle(session, SessionPhase.IDLE)
    return replace(session, points=remaining)


def cancel_polygon(session: PolygonSession) -> PolygonSession:
    if not session.is_active:
        return session
    logger.debug(f"Cancelled polygon session with {len(session.points)} staged vertices")
    return _polygon_idle(session, SessionPhase.CANCELLED)


def pull_polygon_handle(session: PolygonSession, pos: Point) -> PolygonSession:
    if not session.is_active:
        return session
    last = session.points[-1]
    handle = (float(pos[0]), float(pos[1]))
    updated = replace(last, cp2=handle, cp1=mirror(last.pos, handle))
    return replace(session, points=session.points[:-1] + (updated,))


def restyle_polygon_session(session: PolygonSession, style: PolygonStyle) -> PolygonSession:
    return replace(
        session, fill_color=style.fill_color, stroke_color=style.stroke_color, opacity=style.opacity
    )
