"""Service layer for note, folder and graph operations."""

import logging
from typing import Any, List, Optional

from notegraph_mcp.config import NoteGraphConfig, config
from notegraph_mcp.exceptions import (
    ErrorCode,
    FolderConflictError,
    FolderError,
    NoteNotFoundError,
    NoteValidationError,
    ValidationError,
)
from notegraph_mcp.models.schema import (
    BacklinkRef,
    FolderInfo,
    FolderScope,
    GraphData,
    Note,
    NoteFilter,
    NoteUpdate,
    utc_now,
)
from notegraph_mcp.observability import traced
from notegraph_mcp.services.backlink_service import BacklinkIndexer
from notegraph_mcp.services.graph_builder import build_graph
from notegraph_mcp.services.graph_layout import layout_nodes
from notegraph_mcp.services.graph_stats import compute_stats
from notegraph_mcp.storage.note_store import SORT_COLUMNS, NoteStore
from notegraph_mcp.utils import is_in_folder, normalize_folder

logger = logging.getLogger(__name__)


def _clean_folder_path(path: Optional[str], field: str = "path") -> str:
    """Trim a folder path and its outer slashes; it must not end up empty."""
    cleaned = (path or "").strip().strip("/")
    if not cleaned:
        raise ValidationError("Folder path is required", field=field, value=path)
    return cleaned


class NoteService:
    """Service for managing an owner's notes and deriving their graph.

    Every public method takes the owner identity first; nothing here can
    see or touch another owner's notes.
    """

    def __init__(
        self,
        store: Optional[NoteStore] = None,
        engine: Optional[Any] = None,
        settings: Optional[NoteGraphConfig] = None,
    ):
        """Initialize the service.

        Args:
            store: Note store. Created with defaults if None.
            engine: Pre-configured SQLAlchemy engine for a new NoteStore.
                Only used when store is None.
            settings: Graph presentation settings, the global config if None.
        """
        if store is not None:
            self.store = store
        else:
            self.store = NoteStore(engine=engine)
        self.settings = settings or config
        self.backlinks = BacklinkIndexer(self.store)

    def shutdown(self) -> None:
        """Close the underlying store."""
        self.store.close()

    # =========================================================================
    # Notes
    # =========================================================================

    def create_note(
        self,
        owner: str,
        title: str,
        content: str = "",
        folder: Optional[str] = None,
    ) -> Note:
        """Create a new note.

        Links already present in ``content`` are indexed right away.

        Raises:
            NoteValidationError: If the title is empty or whitespace.
        """
        title = (title or "").strip()
        if not title:
            raise NoteValidationError(
                "Note title is required", field="title", code=ErrorCode.NOTE_TITLE_REQUIRED
            )
        note = Note(
            owner=owner,
            title=title,
            content=(content or "").strip(),
            folder=normalize_folder(folder),
        )
        created = self.store.create(note)
        self.backlinks.on_content_changed(owner, created.id, "", created.content)
        logger.info(f"Created note {created.id} ({created.title!r})")
        return created

    def get_note(self, owner: str, note_id: str) -> Note:
        """Retrieve an owned note with its backlink set.

        Raises:
            NoteNotFoundError: If it does not exist or belongs to someone else.
        """
        note = self.store.get(owner, note_id)
        if note is None:
            raise NoteNotFoundError(note_id)
        return note

    def get_backlinks(self, owner: str, note_id: str) -> List[BacklinkRef]:
        """Notes currently recorded as linking to ``note_id``."""
        self.get_note(owner, note_id)
        return self.store.get_backlink_refs(owner, note_id)

    def list_notes(
        self,
        owner: str,
        folder: Optional[str] = "all",
        sort_by: str = "updated_at",
        descending: bool = True,
    ) -> List[Note]:
        """List notes in a folder scope ("all", "root" or a folder path)."""
        if sort_by not in SORT_COLUMNS:
            raise ValidationError(
                f"Cannot sort by '{sort_by}'. Valid fields: {', '.join(SORT_COLUMNS)}",
                field="sort_by",
                value=sort_by,
                code=ErrorCode.INVALID_SORT_FIELD,
            )
        note_filter = NoteFilter(owner=owner, scope=FolderScope.parse(folder))
        return self.store.find(note_filter, sort_by=sort_by, descending=descending)

    def update_note(self, owner: str, note_id: str, changes: NoteUpdate) -> Note:
        """Apply a partial update.

        When the content is part of the update, the link diff between the
        old and new content is pushed into the backlink index. Failures
        there are logged and do not fail the update.

        Raises:
            NoteNotFoundError: If the note is missing or not owned.
            NoteValidationError: If the new title is blank.
        """
        note = self.get_note(owner, note_id)
        old_content = note.content

        if changes.has("title"):
            title = (changes.title or "").strip()
            if not title:
                raise NoteValidationError(
                    "Note title cannot be empty",
                    field="title",
                    code=ErrorCode.NOTE_TITLE_REQUIRED,
                )
            note.title = title
        if changes.has("content"):
            note.content = (changes.content or "").strip()
        if changes.has("folder"):
            note.folder = normalize_folder(changes.folder)

        note.updated_at = utc_now()
        updated = self.store.update(note)

        if changes.has("content"):
            self.backlinks.on_content_changed(owner, note_id, old_content, updated.content)
        return updated

    def move_note(self, owner: str, note_id: str, folder: Optional[str]) -> Note:
        """Move a note to another folder (None or "" for the root)."""
        return self.update_note(owner, note_id, NoteUpdate(folder=folder))

    def delete_note(self, owner: str, note_id: str) -> None:
        """Delete a note and remove it from every backlink set.

        Raises:
            NoteNotFoundError: If the note is missing or not owned.
        """
        if self.backlinks.delete_note(owner, note_id) == 0:
            raise NoteNotFoundError(note_id)
        logger.info(f"Deleted note {note_id}")

    # =========================================================================
    # Folders
    # =========================================================================

    def list_folders(self, owner: str) -> List[FolderInfo]:
        """Folder paths in use, with the number of notes directly in each."""
        return self.store.list_folders(owner)

    def rename_folder(self, owner: str, path: str, new_name: str) -> int:
        """Rename the last segment of a folder path.

        Every note at or below ``path`` has its folder rewritten; links and
        backlinks are untouched.

        Returns:
            Number of notes rewritten (0 if the folder is empty or missing).

        Raises:
            ValidationError: If ``path`` or ``new_name`` is missing.
            FolderError: If ``new_name`` contains a slash.
            FolderConflictError: If the renamed folder already exists.
        """
        path = _clean_folder_path(path)
        new_name = (new_name or "").strip()
        if not new_name:
            raise ValidationError("New folder name is required", field="new_name")
        if "/" in new_name:
            raise FolderError("Folder name cannot contain slashes", path=new_name)

        parent, _, _ = path.rpartition("/")
        new_path = f"{parent}/{new_name}" if parent else new_name
        if new_path == path:
            return 0
        if self.store.folder_exists(owner, new_path):
            raise FolderConflictError(
                f"A folder named '{new_name}' already exists", path=new_path
            )

        count = self.store.rewrite_folder_prefix(owner, path, new_path)
        logger.info(f"Renamed folder '{path}' to '{new_path}' ({count} notes)")
        return count

    def move_folder(self, owner: str, dragged_path: str, target_path: Optional[str]) -> int:
        """Move a folder, with everything below it, under ``target_path``.

        An empty ``target_path`` moves the folder to the root.

        Returns:
            Number of notes rewritten.

        Raises:
            FolderConflictError: If the folder would move into itself or a
                descendant, or the destination already exists.
        """
        dragged_path = _clean_folder_path(dragged_path, field="dragged_path")
        target_path = (target_path or "").strip().strip("/")

        if target_path and is_in_folder(target_path, dragged_path):
            raise FolderConflictError(
                "Cannot move a folder into itself",
                path=target_path,
                code=ErrorCode.FOLDER_MOVE_INTO_SELF,
            )

        name = dragged_path.rpartition("/")[2]
        new_path = f"{target_path}/{name}" if target_path else name
        if new_path == dragged_path:
            return 0
        if self.store.folder_exists(owner, new_path):
            raise FolderConflictError(
                f"A folder named '{name}' already exists in the target location",
                path=new_path,
            )

        count = self.store.rewrite_folder_prefix(owner, dragged_path, new_path)
        logger.info(f"Moved folder '{dragged_path}' to '{new_path}' ({count} notes)")
        return count

    def delete_folder(self, owner: str, path: str) -> int:
        """Delete a folder's notes (subfolders included) and clean backlinks.

        Returns:
            Number of notes deleted (0 if nothing lived there).
        """
        path = _clean_folder_path(path)
        return len(self.backlinks.delete_folder(owner, path))

    # =========================================================================
    # Graph
    # =========================================================================

    @traced("build_graph")
    def get_graph(self, owner: str, folder: Optional[str] = "all") -> GraphData:
        """Build the connection graph for an owner's notes in a folder scope.

        Edges are recomputed from the notes' text on every call, so the
        result never depends on the state of the backlink index.
        """
        note_filter = NoteFilter(owner=owner, scope=FolderScope.parse(folder))
        notes = self.store.find(note_filter, sort_by="created_at")

        built = build_graph(notes, self.settings)
        stats = compute_stats(built.nodes, built.edges, self.settings)
        layout_nodes(built.nodes, built.edges, self.settings)
        return GraphData(nodes=built.nodes, edges=built.edges, stats=stats)
