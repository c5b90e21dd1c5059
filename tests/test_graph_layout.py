"""Tests for the deterministic graph layout."""
import datetime
import math

import pytest

from notegraph_mcp.config import NoteGraphConfig
from notegraph_mcp.models.schema import GraphEdge, GraphNode
from notegraph_mcp.services.graph_layout import (
    build_adjacency,
    connected_component,
    layout_nodes,
)

TS = datetime.datetime(2024, 1, 1, tzinfo=datetime.timezone.utc)


def node(node_id):
    return GraphNode(id=node_id, title=node_id.upper(), created_at=TS, updated_at=TS)


def edge(source, target):
    return GraphEdge(id=f"{source}-{target}", source=source, target=target)


def distance(position, x, y):
    return math.hypot(position.x - x, position.y - y)


@pytest.fixture
def settings():
    return NoteGraphConfig()


class TestComponents:
    """Tests for adjacency and component discovery."""

    def test_adjacency_is_undirected(self):
        adjacency = build_adjacency([node("a"), node("b")], [edge("a", "b")])
        assert list(adjacency["a"]) == ["b"]
        assert list(adjacency["b"]) == ["a"]

    def test_unknown_endpoints_ignored(self):
        adjacency = build_adjacency([node("a")], [edge("a", "zz")])
        assert adjacency == {"a": {}}

    def test_component_is_breadth_first(self):
        nodes = [node(n) for n in "abcd"]
        edges = [edge("a", "b"), edge("b", "c"), edge("a", "d")]
        adjacency = build_adjacency(nodes, edges)
        assert connected_component("a", adjacency) == ["a", "b", "d", "c"]
        assert connected_component("c", adjacency) == ["c", "b", "a", "d"]


class TestLayout:
    """Tests for layout_nodes."""

    def test_empty_is_noop(self, settings):
        layout_nodes([], [], settings)

    def test_single_node_at_center(self, settings):
        nodes = [node("a")]
        layout_nodes(nodes, [], settings)
        assert (nodes[0].position.x, nodes[0].position.y) == (400, 300)

    def test_isolated_nodes_on_outer_ring(self, settings):
        nodes = [node("a"), node("b"), node("c"), node("d")]
        layout_nodes(nodes, [], settings)
        for i, n in enumerate(nodes):
            assert distance(n.position, 400, 300) == pytest.approx(300)
            angle = 2 * math.pi * i / 4
            assert n.position.x == pytest.approx(400 + 300 * math.cos(angle))
            assert n.position.y == pytest.approx(300 + 300 * math.sin(angle))

    def test_cluster_members_surround_their_center(self, settings):
        nodes = [node("a"), node("b"), node("c"), node("x")]
        edges = [edge("a", "b"), edge("b", "c")]
        layout_nodes(nodes, edges, settings)

        # First cluster's center sits on the inner circle at angle 0
        cx, cy = 400 + 200, 300
        for n in nodes[:3]:
            # Radius grows 20 per member within the 50..150 range
            assert distance(n.position, cx, cy) == pytest.approx(60)
        assert distance(nodes[3].position, 400, 300) == pytest.approx(300)

    def test_cluster_radius_is_capped(self, settings):
        nodes = [node(f"n{i}") for i in range(10)]
        edges = [edge("n0", f"n{i}") for i in range(1, 10)]
        layout_nodes(nodes, edges, settings)
        for n in nodes:
            assert distance(n.position, 600, 300) == pytest.approx(150)

    def test_layout_is_stable(self, settings):
        def run():
            nodes = [node(n) for n in "abcdef"]
            edges = [edge("a", "b"), edge("c", "d"), edge("d", "e")]
            layout_nodes(nodes, edges, settings)
            return [(n.position.x, n.position.y) for n in nodes]

        assert run() == run()

    def test_every_node_positioned_once(self, settings):
        nodes = [node(n) for n in "abcde"]
        edges = [edge("a", "b"), edge("c", "d")]
        layout_nodes(nodes, edges, settings)
        positions = {(round(n.position.x, 6), round(n.position.y, 6)) for n in nodes}
        assert len(positions) == 5
