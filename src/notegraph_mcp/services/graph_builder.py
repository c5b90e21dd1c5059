"""Building graph nodes and edges from raw note text."""
import logging
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence, Set, Tuple

from notegraph_mcp.config import NoteGraphConfig, config
from notegraph_mcp.models.schema import GraphEdge, GraphNode, Note, NodeClass
from notegraph_mcp.services.link_parser import extract_link_titles, normalize_title
from notegraph_mcp.utils import word_count

logger = logging.getLogger(__name__)

DEFAULT_COLOR = "#6b7280"

# Base hue per top-level folder name
FOLDER_COLORS: Dict[str, str] = {
    "work": "#3b82f6",
    "personal": "#10b981",
    "projects": "#8b5cf6",
    "research": "#f59e0b",
    "ideas": "#ec4899",
    "notes": DEFAULT_COLOR,
}

# Hex alpha suffix per node class
_OPACITY = {
    NodeClass.HUB: "",
    NodeClass.CONNECTED: "80",
    NodeClass.ISOLATED: "40",
}


def classify(connections: int, settings: Optional[NoteGraphConfig] = None) -> NodeClass:
    """Classify a node by its total connection count."""
    settings = settings or config
    if connections >= settings.hub_threshold:
        return NodeClass.HUB
    if connections >= settings.connected_threshold:
        return NodeClass.CONNECTED
    return NodeClass.ISOLATED


def node_size(connections: int, settings: Optional[NoteGraphConfig] = None) -> int:
    """Visual diameter: grows with connections, clamped to the configured range."""
    settings = settings or config
    size = settings.min_node_size + connections * settings.node_size_step
    return max(settings.min_node_size, min(settings.max_node_size, size))


def node_color(
    connections: int,
    folder: Optional[str],
    settings: Optional[NoteGraphConfig] = None,
) -> str:
    """Folder hue with an opacity tier taken from the node class."""
    base = DEFAULT_COLOR
    if folder:
        base = FOLDER_COLORS.get(folder.split("/")[0].lower(), DEFAULT_COLOR)
    return base + _OPACITY[classify(connections, settings)]


@dataclass
class BuiltGraph:
    """Nodes and directed edges derived from one set of notes."""

    nodes: List[GraphNode] = field(default_factory=list)
    edges: List[GraphEdge] = field(default_factory=list)


def build_graph(
    notes: Sequence[Note], settings: Optional[NoteGraphConfig] = None
) -> BuiltGraph:
    """Turn a filtered list of notes into graph nodes and edges.

    Titles resolve case-insensitively against the given notes only. When
    titles collide the later note in ``notes`` wins. Unresolved titles and
    links a note makes to itself produce no edge. Two references that
    resolve to the same target (say [[Idea]] and [[idea]]) make one edge.

    The stored backlink index is not consulted.
    """
    settings = settings or config

    title_to_id: Dict[str, str] = {}
    for note in notes:
        title_to_id[normalize_title(note.title)] = note.id

    incoming: Dict[str, int] = {note.id: 0 for note in notes}
    outgoing: Dict[str, int] = {note.id: 0 for note in notes}
    edges: List[GraphEdge] = []
    seen: Set[Tuple[str, str]] = set()

    for note in notes:
        for title in extract_link_titles(note.content):
            target_id = title_to_id.get(normalize_title(title))
            if target_id is None or target_id == note.id:
                continue
            pair = (note.id, target_id)
            if pair in seen:
                continue
            seen.add(pair)
            edges.append(
                GraphEdge(id=f"{note.id}-{target_id}", source=note.id, target=target_id)
            )
            outgoing[note.id] += 1
            incoming[target_id] += 1

    nodes: List[GraphNode] = []
    for note in notes:
        total = incoming[note.id] + outgoing[note.id]
        nodes.append(
            GraphNode(
                id=note.id,
                title=note.title,
                folder=note.folder,
                word_count=word_count(note.content),
                created_at=note.created_at,
                updated_at=note.updated_at,
                connections=total,
                incoming=incoming[note.id],
                outgoing=outgoing[note.id],
                size=node_size(total, settings),
                color=node_color(total, note.folder, settings),
                node_class=classify(total, settings),
            )
        )

    logger.debug(f"Built graph: {len(nodes)} nodes, {len(edges)} edges")
    return BuiltGraph(nodes=nodes, edges=edges)
