"""
NoteGraph MCP - a linked-notes store with a derived connection graph, as an MCP server.
Notes reference each other with [[Title]] links; the server keeps a backlink
index current as notes change and builds a laid-out graph of the corpus on demand.

This version uses synchronous operations.
"""

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("notegraph-mcp")
except PackageNotFoundError:
    __version__ = "0.3.0"
