"""Storage layer for the NoteGraph MCP server."""

from notegraph_mcp.storage.note_store import NoteStore

__all__ = [
    "NoteStore",
]
