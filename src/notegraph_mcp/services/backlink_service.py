"""Maintenance of the stored backlink index."""
import logging
from typing import List, Sequence, Tuple

from notegraph_mcp.exceptions import StorageError
from notegraph_mcp.services.link_parser import link_keys
from notegraph_mcp.storage.note_store import NoteStore

logger = logging.getLogger(__name__)


def diff_links(old_content: str, new_content: str) -> Tuple[List[str], List[str]]:
    """Link keys added and removed between two versions of a note's content.

    Returns:
        ``(added, removed)``, each in first-seen order.
    """
    old_keys = link_keys(old_content)
    new_keys = link_keys(new_content)
    added = [key for key in new_keys if key not in old_keys]
    removed = [key for key in old_keys if key not in new_keys]
    return added, removed


class BacklinkIndexer:
    """Keeps each note's backlink set in step with the links pointing at it.

    The index is a convenience for "linked from" panels; the graph view
    recomputes edges from raw text and never reads it. That is why a
    failed update here is logged rather than raised: the note write that
    triggered it has already succeeded, and the index heals on the next
    edit touching the same link.
    """

    def __init__(self, store: NoteStore):
        self.store = store

    def on_content_changed(
        self, owner: str, note_id: str, old_content: str, new_content: str
    ) -> Tuple[int, int]:
        """Apply the link diff of one note edit to its targets' backlink sets.

        Each target is resolved at this moment; a title with no matching
        note is skipped, and a note created later under that title does
        not pick the link up until the linking note is edited again.
        Re-applying the same diff is harmless (set semantics).

        Returns:
            ``(added, removed)`` counts of backlink entries actually changed.
        """
        added_keys, removed_keys = diff_links(old_content, new_content)
        added = removed = 0

        for key in added_keys:
            try:
                added += self.store.add_backlink(owner, note_id, key)
            except StorageError as e:
                logger.warning(
                    f"Failed to add backlink from {note_id} to '{key}': {e}"
                )

        for key in removed_keys:
            try:
                removed += self.store.remove_backlink(owner, note_id, key)
            except StorageError as e:
                logger.warning(
                    f"Failed to remove backlink from {note_id} to '{key}': {e}"
                )

        if added or removed:
            logger.debug(
                f"Backlinks for {note_id}: +{added} -{removed} "
                f"({len(added_keys)} new link(s), {len(removed_keys)} dropped)"
            )
        return added, removed

    def delete_note(self, owner: str, note_id: str) -> int:
        """Delete a note and drop its id from every other backlink set."""
        return self.store.delete_notes(owner, [note_id])

    def delete_notes(self, owner: str, note_ids: Sequence[str]) -> int:
        """Batched form of :meth:`delete_note`."""
        return self.store.delete_notes(owner, note_ids)

    def delete_folder(self, owner: str, path: str) -> List[str]:
        """Cascade-delete a folder's notes and clean their backlinks in one batch."""
        deleted = self.store.delete_folder(owner, path)
        if deleted:
            logger.info(
                f"Deleted folder '{path}' ({len(deleted)} notes) and cleaned backlinks"
            )
        return deleted
