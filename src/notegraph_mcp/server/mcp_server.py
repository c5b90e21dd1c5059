"""MCP server implementation for NoteGraph."""

import atexit
import json
import logging
import uuid
from typing import Optional

from mcp.server.fastmcp import FastMCP

from notegraph_mcp.config import config
from notegraph_mcp.exceptions import NoteGraphError, NoteNotFoundError
from notegraph_mcp.models.schema import NoteUpdate
from notegraph_mcp.observability import metrics, timed_operation
from notegraph_mcp.services.note_service import NoteService

logger = logging.getLogger(__name__)

MAX_TITLE_LENGTH = 500
MAX_CONTENT_LENGTH = 1_000_000  # 1 MB


def _validate_input_lengths(
    title: Optional[str] = None, content: Optional[str] = None
) -> None:
    """Validate input string lengths at the MCP boundary."""
    if title and len(title) > MAX_TITLE_LENGTH:
        raise ValueError(
            f"Title exceeds maximum length of {MAX_TITLE_LENGTH} characters"
        )
    if content and len(content) > MAX_CONTENT_LENGTH:
        raise ValueError(
            f"Content exceeds maximum length of {MAX_CONTENT_LENGTH} characters"
        )


class NoteGraphMcpServer:
    """MCP server exposing notes, folders and the link graph."""

    def __init__(self, engine=None, owner: Optional[str] = None):
        """Initialize the MCP server.

        Args:
            engine: Pre-configured SQLAlchemy engine shared by the store.
            owner: Identity every tool acts as; config.owner when None.
        """
        self.mcp = FastMCP(config.server_name)
        self.owner = owner or config.owner
        self.note_service = NoteService(engine=engine)
        atexit.register(self._shutdown)
        self._register_tools()
        logger.info(f"NoteGraph MCP server initialized for owner '{self.owner}'")

    def _shutdown(self) -> None:
        """Clean up resources on server exit."""
        self.note_service.shutdown()

    def format_error_response(self, error: Exception) -> str:
        """Format an error response in a consistent way.

        Args:
            error: The exception that occurred

        Returns:
            Formatted error message with appropriate level of detail
        """
        error_id = str(uuid.uuid4())[:8]

        if isinstance(error, NoteGraphError):
            logger.error(
                f"[{error.code.name}] [{error_id}]: {error.message}",
                extra={"error_details": error.details},
            )
            return f"Error: {error.message}"
        elif isinstance(error, ValueError):
            logger.error(f"Validation error [{error_id}]: {str(error)}")
            return f"Error: Invalid input (ref: {error_id})"
        elif isinstance(error, OSError):
            # Don't expose paths
            logger.error(f"File system error [{error_id}]: {str(error)}", exc_info=True)
            return f"Error: A file system error occurred (ref: {error_id})"
        else:
            logger.error(f"Unexpected error [{error_id}]: {str(error)}", exc_info=True)
            return f"Error: An unexpected error occurred (ref: {error_id})"

    def _register_tools(self) -> None:
        """Register MCP tools."""

        @self.mcp.tool(name="ng_create_note")
        def ng_create_note(
            title: str, content: str = "", folder: Optional[str] = None
        ) -> str:
            """Create a new note.
            Args:
                title: The title of the note (other notes link to it as [[title]])
                content: The note text; [[Other Title]] links to another note
                folder: Slash-delimited folder path (optional, root when omitted)
            """
            with timed_operation("ng_create_note", title=title[:30]) as op:
                try:
                    _validate_input_lengths(title=title, content=content)
                    note = self.note_service.create_note(
                        self.owner, title=title, content=content, folder=folder
                    )
                    op["note_id"] = note.id
                    return (
                        f"Note created successfully with ID: {note.id} "
                        f"(folder: {note.folder or 'root'})"
                    )
                except Exception as e:
                    return self.format_error_response(e)

        @self.mcp.tool(name="ng_get_note")
        def ng_get_note(note_id: str) -> str:
            """Retrieve a note and the notes linking to it.
            Args:
                note_id: The ID of the note
            """
            with timed_operation("ng_get_note", note_id=note_id) as op:
                try:
                    note = self.note_service.get_note(self.owner, note_id)
                    refs = self.note_service.get_backlinks(self.owner, note_id)
                    op["found"] = True
                    result = f"# {note.title}\n"
                    result += f"ID: {note.id}\n"
                    result += f"Folder: {note.folder or 'root'}\n"
                    result += f"Created: {note.created_at.isoformat()}\n"
                    result += f"Updated: {note.updated_at.isoformat()}\n"
                    if refs:
                        linked = ", ".join(f"{r.title} ({r.id})" for r in refs)
                        result += f"Linked from: {linked}\n"
                    result += f"\n{note.content}\n"
                    return result
                except NoteNotFoundError:
                    op["found"] = False
                    return f"Note not found: {note_id}"
                except Exception as e:
                    return self.format_error_response(e)

        @self.mcp.tool(name="ng_update_note")
        def ng_update_note(
            note_id: str,
            title: Optional[str] = None,
            content: Optional[str] = None,
            folder: Optional[str] = None,
        ) -> str:
            """Update an existing note. Omitted fields are left unchanged.
            Args:
                note_id: The ID of the note to update
                title: New title (optional)
                content: New content (optional, replaces the whole text)
                folder: New folder path (optional, use "root" to move to the root)
            """
            with timed_operation("ng_update_note", note_id=note_id):
                try:
                    _validate_input_lengths(title=title, content=content)
                    fields = {}
                    if title is not None:
                        fields["title"] = title
                    if content is not None:
                        fields["content"] = content
                    if folder is not None:
                        fields["folder"] = None if folder == "root" else folder
                    if not fields:
                        return "Error: Nothing to update."
                    note = self.note_service.update_note(
                        self.owner, note_id, NoteUpdate(**fields)
                    )
                    return f"Note updated successfully: {note.id}"
                except Exception as e:
                    return self.format_error_response(e)

        @self.mcp.tool(name="ng_move_note")
        def ng_move_note(note_id: str, folder: Optional[str] = None) -> str:
            """Move a note to another folder.
            Args:
                note_id: The ID of the note
                folder: Destination folder path (omit for the root)
            """
            with timed_operation("ng_move_note", note_id=note_id):
                try:
                    note = self.note_service.move_note(self.owner, note_id, folder)
                    return f"Note {note.id} moved to {note.folder or 'root'}"
                except Exception as e:
                    return self.format_error_response(e)

        @self.mcp.tool(name="ng_delete_note")
        def ng_delete_note(note_id: str) -> str:
            """Delete a note. Other notes stop listing it as a backlink.
            Args:
                note_id: The ID of the note to delete
            """
            with timed_operation("ng_delete_note", note_id=note_id):
                try:
                    self.note_service.delete_note(self.owner, note_id)
                    return f"Note deleted successfully: {note_id}"
                except Exception as e:
                    return self.format_error_response(e)

        @self.mcp.tool(name="ng_list_notes")
        def ng_list_notes(
            folder: str = "all", sort_by: str = "updated_at", sort_order: str = "desc"
        ) -> str:
            """List notes.
            Args:
                folder: "all", "root" (notes without a folder) or a folder path
                sort_by: updated_at, created_at or title
                sort_order: asc or desc
            """
            with timed_operation("ng_list_notes", folder=folder) as op:
                try:
                    notes = self.note_service.list_notes(
                        self.owner,
                        folder=folder,
                        sort_by=sort_by,
                        descending=sort_order.lower() != "asc",
                    )
                    op["result_count"] = len(notes)
                    if not notes:
                        return "No notes found."
                    output = f"Notes ({len(notes)}):\n\n"
                    for note in notes:
                        output += f"* {note.title} ({note.id}) - {note.folder or 'root'}\n"
                    return output.rstrip()
                except Exception as e:
                    return self.format_error_response(e)

        @self.mcp.tool(name="ng_get_backlinks")
        def ng_get_backlinks(note_id: str) -> str:
            """List the notes that link to a note.
            Args:
                note_id: The ID of the linked note
            """
            with timed_operation("ng_get_backlinks", note_id=note_id):
                try:
                    refs = self.note_service.get_backlinks(self.owner, note_id)
                    if not refs:
                        return f"No notes link to {note_id}."
                    output = f"Linked from ({len(refs)}):\n"
                    for ref in refs:
                        output += f"* {ref.title} ({ref.id})\n"
                    return output.rstrip()
                except Exception as e:
                    return self.format_error_response(e)

        @self.mcp.tool(name="ng_list_folders")
        def ng_list_folders() -> str:
            """List folder paths and how many notes each holds."""
            with timed_operation("ng_list_folders"):
                try:
                    folders = self.note_service.list_folders(self.owner)
                    if not folders:
                        return "No folders yet."
                    output = f"Folders ({len(folders)}):\n"
                    for info in folders:
                        indent = "  " * info.path.count("/")
                        output += f"{indent}* {info.path} ({info.note_count} notes)\n"
                    return output.rstrip()
                except Exception as e:
                    return self.format_error_response(e)

        @self.mcp.tool(name="ng_rename_folder")
        def ng_rename_folder(path: str, new_name: str) -> str:
            """Rename a folder. Notes in subfolders move along.
            Args:
                path: Current folder path, e.g. "work/q1"
                new_name: New last segment, without slashes
            """
            with timed_operation("ng_rename_folder", path=path):
                try:
                    count = self.note_service.rename_folder(self.owner, path, new_name)
                    if count == 0:
                        return "Folder not found or is empty, nothing to rename."
                    return f"Renamed folder to '{new_name}' ({count} notes updated)"
                except Exception as e:
                    return self.format_error_response(e)

        @self.mcp.tool(name="ng_move_folder")
        def ng_move_folder(dragged_path: str, target_path: str = "") -> str:
            """Move a folder under another folder.
            Args:
                dragged_path: Folder to move
                target_path: New parent folder ("" for the root)
            """
            with timed_operation("ng_move_folder", path=dragged_path):
                try:
                    count = self.note_service.move_folder(
                        self.owner, dragged_path, target_path
                    )
                    if count == 0:
                        return "No notes to move."
                    return f"Folder moved successfully ({count} notes updated)"
                except Exception as e:
                    return self.format_error_response(e)

        @self.mcp.tool(name="ng_delete_folder")
        def ng_delete_folder(path: str, confirm: bool = False) -> str:
            """Delete a folder and every note in it, subfolders included.
            Args:
                path: Folder path to delete
                confirm: Must be True to proceed (safety check)
            """
            with timed_operation("ng_delete_folder", path=path) as op:
                try:
                    if not confirm:
                        return (
                            f"Delete folder '{path}' and all notes below it?\n\n"
                            "To proceed, call again with confirm=True"
                        )
                    deleted = self.note_service.delete_folder(self.owner, path)
                    op["deleted"] = deleted
                    if deleted == 0:
                        return "Folder not found or is empty."
                    return f"Deleted folder '{path}' and {deleted} notes"
                except Exception as e:
                    return self.format_error_response(e)

        @self.mcp.tool(name="ng_get_graph")
        def ng_get_graph(folder: str = "all") -> str:
            """Get the note connection graph as JSON (nodes, edges, stats).
            Args:
                folder: "all", "root" or a folder path to restrict the graph to
            """
            with timed_operation("ng_get_graph", folder=folder) as op:
                try:
                    graph = self.note_service.get_graph(self.owner, folder=folder)
                    op["node_count"] = len(graph.nodes)
                    op["edge_count"] = len(graph.edges)
                    return graph.model_dump_json()
                except Exception as e:
                    return self.format_error_response(e)

        @self.mcp.tool(name="ng_status")
        def ng_status() -> str:
            """Show server health and per-tool metrics."""
            summary = metrics.get_summary()
            return json.dumps(
                {"summary": summary, "operations": metrics.get_metrics()},
                indent=2,
                default=str,
            )

    def run(self) -> None:
        """Run the MCP server."""
        self.mcp.run()
