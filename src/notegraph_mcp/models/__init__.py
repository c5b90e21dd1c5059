"""Data models for the NoteGraph MCP server."""
