# tests/test_mcp_server.py
"""Tests for the MCP server implementation."""
import datetime
import json
from unittest.mock import MagicMock, patch

from notegraph_mcp.exceptions import FolderConflictError, NoteNotFoundError
from notegraph_mcp.models.schema import (
    BacklinkRef,
    FolderInfo,
    GraphData,
    GraphEdge,
    GraphNode,
    GraphStats,
    NoteUpdate,
)
from notegraph_mcp.server.mcp_server import MAX_TITLE_LENGTH, NoteGraphMcpServer


class TestMcpServer:
    """Tests for the NoteGraphMcpServer class."""

    def setup_method(self):
        """Set up test environment before each test."""
        # Capture the tool decorator functions when registering
        self.registered_tools = {}

        # Create a mock for FastMCP
        self.mock_mcp = MagicMock()

        # Mock the tool decorator to capture registered functions BEFORE server creation
        def mock_tool_decorator(*args, **kwargs):
            def tool_wrapper(func):
                name = kwargs.get('name')
                self.registered_tools[name] = func
                return func
            return tool_wrapper
        self.mock_mcp.tool = mock_tool_decorator

        self.mock_note_service = MagicMock()

        self.mcp_patcher = patch('notegraph_mcp.server.mcp_server.FastMCP', return_value=self.mock_mcp)
        self.service_patcher = patch(
            'notegraph_mcp.server.mcp_server.NoteService', return_value=self.mock_note_service
        )
        self.mcp_patcher.start()
        self.service_patcher.start()

        # Create a server instance AFTER setting up the mocks
        self.server = NoteGraphMcpServer(owner="alice")

    def teardown_method(self):
        """Clean up after each test."""
        self.mcp_patcher.stop()
        self.service_patcher.stop()

    def test_all_tools_registered(self):
        assert set(self.registered_tools) == {
            'ng_create_note', 'ng_get_note', 'ng_update_note', 'ng_move_note',
            'ng_delete_note', 'ng_list_notes', 'ng_get_backlinks', 'ng_list_folders',
            'ng_rename_folder', 'ng_move_folder', 'ng_delete_folder', 'ng_get_graph',
            'ng_status',
        }

    def test_create_note_tool(self):
        """Test the ng_create_note tool."""
        mock_note = MagicMock()
        mock_note.id = "test123"
        mock_note.folder = "work"
        self.mock_note_service.create_note.return_value = mock_note

        result = self.registered_tools['ng_create_note'](
            title="Test Note", content="See [[Other]]", folder="work"
        )

        assert "successfully" in result
        assert "test123" in result
        self.mock_note_service.create_note.assert_called_with(
            "alice", title="Test Note", content="See [[Other]]", folder="work"
        )

    def test_create_note_title_too_long(self):
        result = self.registered_tools['ng_create_note'](title="x" * (MAX_TITLE_LENGTH + 1))
        assert result.startswith("Error: Invalid input")
        self.mock_note_service.create_note.assert_not_called()

    def test_get_note_tool(self):
        """Test the ng_get_note tool."""
        mock_note = MagicMock()
        mock_note.id = "test123"
        mock_note.title = "Test Note"
        mock_note.content = "Test content"
        mock_note.folder = None
        mock_note.created_at.isoformat.return_value = "2024-01-01T12:00:00"
        mock_note.updated_at.isoformat.return_value = "2024-01-01T12:30:00"
        self.mock_note_service.get_note.return_value = mock_note
        self.mock_note_service.get_backlinks.return_value = [
            BacklinkRef(id="src1", title="Source")
        ]

        result = self.registered_tools['ng_get_note'](note_id="test123")

        assert "# Test Note" in result
        assert "ID: test123" in result
        assert "Folder: root" in result
        assert "Linked from: Source (src1)" in result
        assert "Test content" in result
        self.mock_note_service.get_note.assert_called_with("alice", "test123")

    def test_get_note_not_found(self):
        self.mock_note_service.get_note.side_effect = NoteNotFoundError("missing")
        result = self.registered_tools['ng_get_note'](note_id="missing")
        assert result == "Note not found: missing"

    def test_update_note_tool(self):
        mock_note = MagicMock()
        mock_note.id = "n1"
        self.mock_note_service.update_note.return_value = mock_note

        result = self.registered_tools['ng_update_note'](note_id="n1", content="new", folder="root")

        assert "updated successfully" in result
        args = self.mock_note_service.update_note.call_args[0]
        assert args[:2] == ("alice", "n1")
        changes = args[2]
        assert isinstance(changes, NoteUpdate)
        assert changes.content == "new"
        assert changes.has("folder") and changes.folder is None
        assert not changes.has("title")

    def test_update_note_nothing_to_do(self):
        result = self.registered_tools['ng_update_note'](note_id="n1")
        assert "Nothing to update" in result
        self.mock_note_service.update_note.assert_not_called()

    def test_delete_note_tool(self):
        result = self.registered_tools['ng_delete_note'](note_id="n1")
        assert "deleted successfully" in result
        self.mock_note_service.delete_note.assert_called_with("alice", "n1")

    def test_list_notes_tool(self):
        note = MagicMock()
        note.id = "n1"
        note.title = "First"
        note.folder = "work"
        self.mock_note_service.list_notes.return_value = [note]

        result = self.registered_tools['ng_list_notes'](folder="work", sort_by="title", sort_order="asc")

        assert "Notes (1)" in result
        assert "First (n1) - work" in result
        self.mock_note_service.list_notes.assert_called_with(
            "alice", folder="work", sort_by="title", descending=False
        )

    def test_list_folders_tool(self):
        self.mock_note_service.list_folders.return_value = [
            FolderInfo(path="work", note_count=2),
            FolderInfo(path="work/q1", note_count=1),
        ]
        result = self.registered_tools['ng_list_folders']()
        assert "* work (2 notes)" in result
        assert "  * work/q1 (1 notes)" in result

    def test_rename_folder_conflict(self):
        self.mock_note_service.rename_folder.side_effect = FolderConflictError(
            "A folder named 'jobs' already exists", path="jobs"
        )
        result = self.registered_tools['ng_rename_folder'](path="work", new_name="jobs")
        assert result == "Error: A folder named 'jobs' already exists"

    def test_move_folder_tool(self):
        self.mock_note_service.move_folder.return_value = 3
        result = self.registered_tools['ng_move_folder'](dragged_path="work", target_path="archive")
        assert "3 notes updated" in result
        self.mock_note_service.move_folder.assert_called_with("alice", "work", "archive")

    def test_delete_folder_requires_confirm(self):
        result = self.registered_tools['ng_delete_folder'](path="work")
        assert "confirm=True" in result
        self.mock_note_service.delete_folder.assert_not_called()

        self.mock_note_service.delete_folder.return_value = 4
        result = self.registered_tools['ng_delete_folder'](path="work", confirm=True)
        assert "4 notes" in result

    def test_get_graph_tool(self):
        ts = datetime.datetime(2024, 1, 1, tzinfo=datetime.timezone.utc)
        graph = GraphData(
            nodes=[
                GraphNode(id="a", title="A", created_at=ts, updated_at=ts),
                GraphNode(id="b", title="B", created_at=ts, updated_at=ts),
            ],
            edges=[GraphEdge(id="a-b", source="a", target="b")],
            stats=GraphStats(total_notes=2, total_connections=1),
        )
        self.mock_note_service.get_graph.return_value = graph

        payload = json.loads(self.registered_tools['ng_get_graph'](folder="work"))

        assert [n["id"] for n in payload["nodes"]] == ["a", "b"]
        assert payload["edges"][0] == {"id": "a-b", "source": "a", "target": "b"}
        assert payload["stats"]["total_connections"] == 1
        assert payload["nodes"][0]["position"] == {"x": 0.0, "y": 0.0}
        self.mock_note_service.get_graph.assert_called_with("alice", folder="work")

    def test_status_tool(self):
        payload = json.loads(self.registered_tools['ng_status']())
        assert "summary" in payload
        assert "operations" in payload

    def test_error_handling(self):
        """Test error handling in the server."""
        result = self.server.format_error_response(ValueError("Invalid input"))
        assert "Error: Invalid input" in result

        io_error = OSError("/home/user/.notegraph/db/secret.db not found")
        result = self.server.format_error_response(io_error)
        assert "file system error" in result.lower()
        assert "/home/user" not in result

        general_error = Exception("DatabaseError: connection string xyz")
        result = self.server.format_error_response(general_error)
        assert "unexpected error" in result.lower()
        assert "DatabaseError" not in result
