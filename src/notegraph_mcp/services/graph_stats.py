"""Corpus-level statistics over a built graph."""
from typing import Dict, Optional, Sequence

from notegraph_mcp.config import NoteGraphConfig, config
from notegraph_mcp.models.schema import ROOT_FOLDER, GraphEdge, GraphNode, GraphStats


def compute_stats(
    nodes: Sequence[GraphNode],
    edges: Sequence[GraphEdge],
    settings: Optional[NoteGraphConfig] = None,
) -> GraphStats:
    """Aggregate node and edge output into corpus metrics.

    The hub count uses the same threshold as the node classification, so
    the number shown matches the nodes drawn as hubs.
    """
    settings = settings or config
    connections = [node.connections for node in nodes]

    folders: Dict[str, int] = {}
    for node in nodes:
        key = node.folder or ROOT_FOLDER
        folders[key] = folders.get(key, 0) + 1

    avg = sum(connections) / len(connections) if connections else 0.0
    return GraphStats(
        total_notes=len(nodes),
        total_connections=len(edges),
        avg_connections=round(avg, 2),
        max_connections=max(connections, default=0),
        isolated_nodes=sum(1 for c in connections if c == 0),
        hub_nodes=sum(1 for c in connections if c >= settings.hub_threshold),
        folder_distribution=folders,
    )
