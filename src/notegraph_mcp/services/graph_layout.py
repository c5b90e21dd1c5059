"""Deterministic 2-D layout for graph nodes.

Not a force simulation: one pass over the connected components, so an
unchanged graph always lays out to the same coordinates.

Isolated nodes go on an outer ring around the canvas center. Every
component of two or more nodes gets a cluster center on an inner circle
and its members are spread on a small circle around that center.
"""
import math
from collections import deque
from typing import Dict, List, Optional, Sequence, Set

from notegraph_mcp.config import NoteGraphConfig, config
from notegraph_mcp.models.schema import GraphEdge, GraphNode, Position

OUTER_RING_FACTOR = 1.5
CLUSTER_SPACING = 20
MIN_CLUSTER_RADIUS = 50
MAX_CLUSTER_RADIUS = 150

Adjacency = Dict[str, Dict[str, None]]


def build_adjacency(nodes: Sequence[GraphNode], edges: Sequence[GraphEdge]) -> Adjacency:
    """Undirected neighbor sets, insertion-ordered for reproducible traversal.

    Edges whose endpoints are not among ``nodes`` are ignored.
    """
    adjacency: Adjacency = {node.id: {} for node in nodes}
    for edge in edges:
        if edge.source in adjacency and edge.target in adjacency:
            adjacency[edge.source][edge.target] = None
            adjacency[edge.target][edge.source] = None
    return adjacency


def connected_component(start_id: str, adjacency: Adjacency) -> List[str]:
    """Breadth-first collection of every node reachable from ``start_id``."""
    visited: Set[str] = {start_id}
    component: List[str] = []
    queue = deque([start_id])
    while queue:
        node_id = queue.popleft()
        component.append(node_id)
        for neighbor in adjacency.get(node_id, {}):
            if neighbor not in visited:
                visited.add(neighbor)
                queue.append(neighbor)
    return component


def _on_circle(cx: float, cy: float, radius: float, angle: float) -> Position:
    return Position(x=cx + radius * math.cos(angle), y=cy + radius * math.sin(angle))


def layout_nodes(
    nodes: Sequence[GraphNode],
    edges: Sequence[GraphEdge],
    settings: Optional[NoteGraphConfig] = None,
) -> None:
    """Assign a position to every node in place."""
    if not nodes:
        return
    settings = settings or config
    cx, cy = settings.canvas_center_x, settings.canvas_center_y
    radius = settings.layout_radius

    if len(nodes) == 1:
        nodes[0].position = Position(x=cx, y=cy)
        return

    adjacency = build_adjacency(nodes, edges)
    by_id = {node.id: node for node in nodes}
    total = len(nodes)
    positioned: Set[str] = set()
    component_index = 0

    for index, node in enumerate(nodes):
        if node.id in positioned:
            continue

        component = connected_component(node.id, adjacency)
        if len(component) == 1:
            angle = 2 * math.pi * index / total
            node.position = _on_circle(cx, cy, radius * OUTER_RING_FACTOR, angle)
        else:
            cluster_angle = 2 * math.pi * component_index / max(1, total / 4)
            center = _on_circle(cx, cy, radius, cluster_angle)
            cluster_radius = min(
                MAX_CLUSTER_RADIUS,
                max(MIN_CLUSTER_RADIUS, len(component) * CLUSTER_SPACING),
            )
            for i, member_id in enumerate(component):
                if member_id in positioned:
                    continue
                angle = 2 * math.pi * i / len(component)
                by_id[member_id].position = _on_circle(
                    center.x, center.y, cluster_radius, angle
                )
            component_index += 1

        positioned.update(component)
