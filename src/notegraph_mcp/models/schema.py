"""Data models for the NoteGraph MCP server."""

import datetime
import os
import threading
from datetime import timezone
from enum import Enum
from typing import Dict, List, Optional

from pydantic import BaseModel, Field, field_validator

from notegraph_mcp.utils import ROOT_FOLDER, normalize_folder

# Folder scope keywords accepted by the graph read and note listing
ALL_FOLDERS = "all"


def utc_now() -> datetime.datetime:
    """Get current UTC time as timezone-aware datetime."""
    return datetime.datetime.now(timezone.utc)


def ensure_timezone_aware(dt_value: Optional[datetime.datetime]) -> datetime.datetime:
    """Ensure a datetime is timezone-aware, treating naive datetimes as UTC.

    SQLite hands DateTime columns back without tzinfo, so every value read
    from the database passes through here.
    """
    if dt_value is None:
        return utc_now()
    if dt_value.tzinfo is None:
        return dt_value.replace(tzinfo=timezone.utc)
    return dt_value


# Thread-safe counter for uniqueness (seeded from PID for cross-process safety)
_id_lock = threading.Lock()
_last_timestamp = 0
_counter = (os.getpid() * 7) % 1_000_000


def generate_id() -> str:
    """Generate a timestamp-based note ID with guaranteed uniqueness.

    Returns:
        A string in format "YYYYMMDDTHHMMSSsssssscccccc" where ssssss is the
        microsecond component and cccccc a counter for IDs generated in the
        same microsecond (seeded from the PID so processes do not collide).
    """
    global _last_timestamp, _counter

    with _id_lock:
        now = utc_now()
        current_timestamp = int(now.timestamp() * 1_000_000)

        if current_timestamp == _last_timestamp:
            _counter += 1
        else:
            _last_timestamp = current_timestamp
            _counter = (os.getpid() * 7) % 1_000_000

        _counter %= 1_000_000

        date_time = now.strftime("%Y%m%dT%H%M%S")
        return f"{date_time}{now.microsecond:06d}{_counter:06d}"


class Note(BaseModel):
    """A note owned by a single user."""

    id: str = Field(default_factory=generate_id, description="Unique ID of the note")
    owner: str = Field(..., description="Opaque identity of the owning user")
    title: str = Field(..., description="Title of the note")
    content: str = Field(default="", description="Free text, may contain [[Title]] links")
    folder: Optional[str] = Field(
        default=None, description="Slash-delimited folder path, None for the root"
    )
    backlinks: List[str] = Field(
        default_factory=list,
        description="IDs of notes whose content currently links to this note",
    )
    created_at: datetime.datetime = Field(
        default_factory=utc_now, description="When the note was created (UTC)"
    )
    updated_at: datetime.datetime = Field(
        default_factory=utc_now, description="When the note was last updated (UTC)"
    )

    model_config = {"validate_assignment": True, "extra": "forbid"}

    @field_validator("title")
    @classmethod
    def validate_title(cls, v: str) -> str:
        """Validate that the title is not empty."""
        if not v.strip():
            raise ValueError("Title cannot be empty")
        return v

    @field_validator("folder")
    @classmethod
    def validate_folder(cls, v: Optional[str]) -> Optional[str]:
        """Blank folders mean the root."""
        return normalize_folder(v)


class NoteUpdate(BaseModel):
    """A partial update to a note.

    Only fields explicitly passed are applied, so ``NoteUpdate(folder=None)``
    moves a note to the root while ``NoteUpdate(title="x")`` leaves its
    folder alone.
    """

    title: Optional[str] = None
    content: Optional[str] = None
    folder: Optional[str] = None

    model_config = {"extra": "forbid"}

    def has(self, field: str) -> bool:
        return field in self.model_fields_set


class FolderScopeKind(str, Enum):
    """How a note query is restricted by folder."""

    ALL = "all"
    ROOT = "root"
    PREFIX = "prefix"


class FolderScope(BaseModel):
    """Folder restriction for a note query."""

    kind: FolderScopeKind = FolderScopeKind.ALL
    path: Optional[str] = None

    model_config = {"frozen": True}

    @classmethod
    def parse(cls, value: Optional[str]) -> "FolderScope":
        """Build a scope from the wire form: "all", "root" or a folder path."""
        value = (value or "").strip().strip("/").strip()
        if not value or value == ALL_FOLDERS:
            return cls(kind=FolderScopeKind.ALL)
        if value == ROOT_FOLDER:
            return cls(kind=FolderScopeKind.ROOT)
        return cls(kind=FolderScopeKind.PREFIX, path=value)


class NoteFilter(BaseModel):
    """Owner and folder restriction for fetching notes."""

    owner: str
    scope: FolderScope = Field(default_factory=FolderScope)

    model_config = {"frozen": True}


class BacklinkRef(BaseModel):
    """A note that links to another, as shown in a "linked from" panel."""

    id: str
    title: str


class FolderInfo(BaseModel):
    """A folder path and the number of notes directly in it."""

    path: str
    note_count: int


class NodeClass(str, Enum):
    """Visual classification of a graph node by its connection count."""

    HUB = "hub"
    CONNECTED = "connected"
    ISOLATED = "isolated"


class Position(BaseModel):
    """2-D layout coordinates."""

    x: float = 0.0
    y: float = 0.0


class GraphNode(BaseModel):
    """A note as drawn in the graph view. Derived on every read, never stored."""

    id: str
    title: str
    folder: Optional[str] = None
    word_count: int = 0
    created_at: datetime.datetime
    updated_at: datetime.datetime
    connections: int = 0
    incoming: int = 0
    outgoing: int = 0
    size: int = 40
    color: str = "#6b7280"
    node_class: NodeClass = NodeClass.ISOLATED
    position: Position = Field(default_factory=Position)


class GraphEdge(BaseModel):
    """A directed link from the linking note to the linked note."""

    id: str
    source: str
    target: str

    model_config = {"frozen": True}


class GraphStats(BaseModel):
    """Corpus-level aggregates over a built graph."""

    total_notes: int = 0
    total_connections: int = 0
    avg_connections: float = 0.0
    max_connections: int = 0
    isolated_nodes: int = 0
    hub_nodes: int = 0
    folder_distribution: Dict[str, int] = Field(default_factory=dict)


class GraphData(BaseModel):
    """Everything the graph view needs: laid-out nodes, edges and stats."""

    nodes: List[GraphNode] = Field(default_factory=list)
    edges: List[GraphEdge] = Field(default_factory=list)
    stats: GraphStats = Field(default_factory=GraphStats)
