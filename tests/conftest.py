"""Shared fixtures for the roadbuilder tests."""
import pytest

from roadbuilder.config import EditorSettings
from roadbuilder.editor import Editor
from roadbuilder.model import PolygonVertex
from roadbuilder.polygons import PolygonStore
from roadbuilder.topology import TopologyStore


@pytest.fixture
def topology():
    return TopologyStore()


@pytest.fixture
def polygons():
    return PolygonStore()


@pytest.fixture
def editor():
    """Editor at 1 metre per pixel so lengths and areas read in world units."""
    return Editor(EditorSettings(meters_per_pixel=1.0))


@pytest.fixture
def straight_road(topology):
    """Two nodes joined by a straight road from (0,0) to (100,0)."""
    a = topology.add_node((0.0, 0.0))
    b = topology.add_node((100.0, 0.0))
    road = topology.connect(a.id, b.id)
    return a, b, road


def make_square(store, size=10.0, origin=(0.0, 0.0), meters_per_pixel=1.0):
    ox, oy = origin
    corners = [(ox, oy), (ox + size, oy), (ox + size, oy + size), (ox, oy + size)]
    vertices = [PolygonVertex.straight(store.ids.next("vtx"), x, y) for x, y in corners]
    return store.add(
        vertices,
        fill_color="#3b82f6",
        stroke_color="#1e40af",
        opacity=0.3,
        meters_per_pixel=meters_per_pixel,
    )


@pytest.fixture
def square(polygons):
    """100x100 straight-edged square at the origin."""
    return make_square(polygons, size=100.0)


@pytest.fixture
def square_factory():
    return make_square
