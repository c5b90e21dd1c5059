"""Store access for notes and their backlink sets."""
import datetime
import logging
from contextlib import contextmanager
from typing import Dict, Iterator, List, Optional, Sequence

from sqlalchemy import delete, func, insert, literal, or_, select, update
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from notegraph_mcp.exceptions import ErrorCode, NoteNotFoundError, StorageError
from notegraph_mcp.models.db_models import DBNote, backlinks, get_session_factory, init_db
from notegraph_mcp.models.schema import (
    BacklinkRef,
    FolderInfo,
    FolderScope,
    FolderScopeKind,
    Note,
    NoteFilter,
    ensure_timezone_aware,
    utc_now,
)
from notegraph_mcp.services.link_parser import normalize_title
from notegraph_mcp.utils import escape_like_pattern

logger = logging.getLogger(__name__)

# Sortable columns for list queries
SORT_COLUMNS = {
    "created_at": DBNote.created_at,
    "updated_at": DBNote.updated_at,
    "title": DBNote.title_key,
}


def _naive_utc(value: datetime.datetime) -> datetime.datetime:
    """SQLite DateTime columns hold naive values; store them as UTC."""
    if value.tzinfo is not None:
        value = value.astimezone(datetime.timezone.utc).replace(tzinfo=None)
    return value


def folder_clause(path: str):
    """WHERE clause for notes whose folder is ``path`` or lies below it."""
    return or_(
        DBNote.folder == path,
        DBNote.folder.like(escape_like_pattern(path) + "/%", escape="\\"),
    )


def scope_clause(scope: FolderScope):
    """WHERE clause for a folder scope, or None for "all"."""
    if scope.kind == FolderScopeKind.ROOT:
        return DBNote.folder.is_(None)
    if scope.kind == FolderScopeKind.PREFIX:
        return folder_clause(scope.path)
    return None


class NoteStore:
    """Explicitly constructed access object for the note store.

    Owns the engine for its lifetime: open it at process start, pass it to
    the services, and ``close()`` it at shutdown. Every query is scoped to
    an owner, and a note owned by someone else is indistinguishable from
    a missing one.

    Backlink sets are only ever changed through single-statement
    add-to-set / remove-from-set operations, so two writers touching the
    same target's set cannot lose each other's update.
    """

    def __init__(self, engine: Optional[Engine] = None):
        """Initialize the store.

        Args:
            engine: Pre-configured SQLAlchemy engine. When None, one is
                created from config via init_db().
        """
        self.engine = engine or init_db()
        self.session_factory = get_session_factory(self.engine)
        logger.info("NoteStore opened on %s", self.engine.url)

    def close(self) -> None:
        """Release pooled connections."""
        self.engine.dispose()
        logger.info("NoteStore closed")

    @contextmanager
    def _transaction(
        self, operation: str, code: ErrorCode = ErrorCode.STORAGE_WRITE_FAILED
    ) -> Iterator[Session]:
        """Session that commits on success and maps driver errors to StorageError."""
        session = self.session_factory()
        try:
            yield session
            session.commit()
        except SQLAlchemyError as e:
            session.rollback()
            raise StorageError(
                f"Storage operation '{operation}' failed",
                operation=operation,
                code=code,
                original_error=e,
            ) from e
        finally:
            session.close()

    # ------------------------------------------------------------------
    # Point lookups and queries
    # ------------------------------------------------------------------

    def _to_model(self, db_note: DBNote, backlink_ids: Sequence[str] = ()) -> Note:
        return Note(
            id=db_note.id,
            owner=db_note.owner,
            title=db_note.title,
            content=db_note.content or "",
            folder=db_note.folder,
            backlinks=list(backlink_ids),
            created_at=ensure_timezone_aware(db_note.created_at),
            updated_at=ensure_timezone_aware(db_note.updated_at),
        )

    def _backlink_ids(self, session: Session, note_id: str) -> List[str]:
        return list(
            session.scalars(
                select(backlinks.c.source_id)
                .where(backlinks.c.note_id == note_id)
                .order_by(backlinks.c.source_id)
            ).all()
        )

    def get(self, owner: str, note_id: str) -> Optional[Note]:
        """Get an owned note, with its backlink set, by ID."""
        with self._transaction("get", ErrorCode.STORAGE_READ_FAILED) as session:
            db_note = session.scalar(
                select(DBNote).where(DBNote.id == note_id, DBNote.owner == owner)
            )
            if db_note is None:
                return None
            return self._to_model(db_note, self._backlink_ids(session, note_id))

    def find(
        self,
        note_filter: NoteFilter,
        sort_by: str = "created_at",
        descending: bool = False,
        with_backlinks: bool = False,
    ) -> List[Note]:
        """Fetch an owner's notes, optionally restricted to a folder scope.

        Ties on the sort column are broken by ID so results are stable.
        """
        column = SORT_COLUMNS[sort_by]
        query = select(DBNote).where(DBNote.owner == note_filter.owner)
        clause = scope_clause(note_filter.scope)
        if clause is not None:
            query = query.where(clause)
        if descending:
            query = query.order_by(column.desc(), DBNote.id.desc())
        else:
            query = query.order_by(column.asc(), DBNote.id.asc())

        with self._transaction("find", ErrorCode.STORAGE_READ_FAILED) as session:
            db_notes = session.scalars(query).all()
            links: Dict[str, List[str]] = {}
            if with_backlinks and db_notes:
                rows = session.execute(
                    select(backlinks.c.note_id, backlinks.c.source_id)
                    .where(backlinks.c.note_id.in_([n.id for n in db_notes]))
                    .order_by(backlinks.c.source_id)
                ).all()
                for note_id, source_id in rows:
                    links.setdefault(note_id, []).append(source_id)
            return [self._to_model(n, links.get(n.id, ())) for n in db_notes]

    def get_backlink_refs(self, owner: str, note_id: str) -> List[BacklinkRef]:
        """Notes in ``note_id``'s backlink set that still exist, by title."""
        with self._transaction("get_backlink_refs", ErrorCode.STORAGE_READ_FAILED) as session:
            rows = session.execute(
                select(DBNote.id, DBNote.title)
                .join(backlinks, backlinks.c.source_id == DBNote.id)
                .where(backlinks.c.note_id == note_id, DBNote.owner == owner)
                .order_by(DBNote.title_key, DBNote.id)
            ).all()
            return [BacklinkRef(id=row.id, title=row.title) for row in rows]

    def list_folders(self, owner: str) -> List[FolderInfo]:
        """Distinct folder paths of an owner's notes with per-folder counts."""
        with self._transaction("list_folders", ErrorCode.STORAGE_READ_FAILED) as session:
            rows = session.execute(
                select(DBNote.folder, func.count(DBNote.id))
                .where(DBNote.owner == owner, DBNote.folder.is_not(None))
                .group_by(DBNote.folder)
                .order_by(DBNote.folder)
            ).all()
            return [FolderInfo(path=folder, note_count=count) for folder, count in rows]

    def folder_exists(self, owner: str, path: str) -> bool:
        """True if any of the owner's notes lives at or below ``path``."""
        with self._transaction("folder_exists", ErrorCode.STORAGE_READ_FAILED) as session:
            found = session.scalar(
                select(DBNote.id)
                .where(DBNote.owner == owner, folder_clause(path))
                .limit(1)
            )
            return found is not None

    # ------------------------------------------------------------------
    # Note writes
    # ------------------------------------------------------------------

    def create(self, note: Note) -> Note:
        """Insert a new note. Its backlink set starts empty."""
        with self._transaction("create") as session:
            session.add(
                DBNote(
                    id=note.id,
                    owner=note.owner,
                    title=note.title,
                    title_key=normalize_title(note.title),
                    content=note.content,
                    folder=note.folder,
                    created_at=_naive_utc(note.created_at),
                    updated_at=_naive_utc(note.updated_at),
                )
            )
        logger.debug("Created note %s (%r)", note.id, note.title)
        return note.model_copy(update={"backlinks": []})

    def update(self, note: Note) -> Note:
        """Write a note's title, content, folder and timestamps back.

        Raises:
            NoteNotFoundError: If the note is missing or not owned by ``note.owner``.
        """
        with self._transaction("update") as session:
            result = session.execute(
                update(DBNote)
                .where(DBNote.id == note.id, DBNote.owner == note.owner)
                .values(
                    title=note.title,
                    title_key=normalize_title(note.title),
                    content=note.content,
                    folder=note.folder,
                    updated_at=_naive_utc(note.updated_at),
                )
                .execution_options(synchronize_session=False)
            )
            if result.rowcount == 0:
                raise NoteNotFoundError(note.id)
            backlink_ids = self._backlink_ids(session, note.id)
        return note.model_copy(update={"backlinks": backlink_ids})

    # ------------------------------------------------------------------
    # Backlink set operations
    # ------------------------------------------------------------------

    def add_backlink(self, owner: str, source_id: str, title_key: str) -> int:
        """Add ``source_id`` to the backlink set of the note titled ``title_key``.

        Target resolution and insertion run as one statement. When several
        notes share the title, the most recently created one is the target.
        A missing target or a self-reference inserts nothing.

        Returns:
            Number of rows added (0 or 1).
        """
        target = (
            select(DBNote.id)
            .where(DBNote.owner == owner, DBNote.title_key == title_key)
            .order_by(DBNote.created_at.desc(), DBNote.id.desc())
            .limit(1)
            .subquery()
        )
        stmt = (
            insert(backlinks)
            .prefix_with("OR IGNORE")
            .from_select(
                ["note_id", "source_id"],
                select(target.c.id, literal(source_id)).where(target.c.id != source_id),
            )
        )
        with self._transaction("add_backlink") as session:
            return session.execute(stmt).rowcount or 0

    def remove_backlink(self, owner: str, source_id: str, title_key: str) -> int:
        """Remove ``source_id`` from the backlink sets of notes titled ``title_key``.

        Returns:
            Number of rows removed.
        """
        stmt = delete(backlinks).where(
            backlinks.c.source_id == source_id,
            backlinks.c.note_id.in_(
                select(DBNote.id).where(
                    DBNote.owner == owner, DBNote.title_key == title_key
                )
            ),
        )
        with self._transaction("remove_backlink") as session:
            return session.execute(stmt).rowcount or 0

    # ------------------------------------------------------------------
    # Deletes and folder rewrites
    # ------------------------------------------------------------------

    def _delete_with_cleanup(self, session: Session, owner: str, note_ids: List[str]) -> int:
        """Delete notes and purge their ids from every backlink set, in ``session``."""
        if not note_ids:
            return 0
        owned = select(DBNote.id).where(DBNote.owner == owner)
        # The deleted notes' own sets
        session.execute(delete(backlinks).where(backlinks.c.note_id.in_(note_ids)))
        # The deleted ids inside everybody else's sets
        session.execute(
            delete(backlinks).where(
                backlinks.c.source_id.in_(note_ids), backlinks.c.note_id.in_(owned)
            )
        )
        result = session.execute(
            delete(DBNote)
            .where(DBNote.owner == owner, DBNote.id.in_(note_ids))
            .execution_options(synchronize_session=False)
        )
        return result.rowcount or 0

    def delete_notes(self, owner: str, note_ids: Sequence[str]) -> int:
        """Delete owned notes and clean up backlinks in one transaction.

        IDs that are missing or owned by someone else are ignored.

        Returns:
            Number of notes deleted.
        """
        with self._transaction("delete_notes", ErrorCode.STORAGE_DELETE_FAILED) as session:
            ids = list(
                session.scalars(
                    select(DBNote.id).where(
                        DBNote.owner == owner, DBNote.id.in_(list(note_ids))
                    )
                ).all()
            )
            deleted = self._delete_with_cleanup(session, owner, ids)
        if deleted:
            logger.debug("Deleted %d note(s) for owner %s", deleted, owner)
        return deleted

    def delete_folder(self, owner: str, path: str) -> List[str]:
        """Delete every note at or below ``path`` plus backlink cleanup, as one batch.

        Returns:
            IDs of the deleted notes.
        """
        with self._transaction("delete_folder", ErrorCode.STORAGE_DELETE_FAILED) as session:
            ids = list(
                session.scalars(
                    select(DBNote.id).where(DBNote.owner == owner, folder_clause(path))
                ).all()
            )
            self._delete_with_cleanup(session, owner, ids)
        return ids

    def rewrite_folder_prefix(self, owner: str, old_path: str, new_path: str) -> int:
        """Replace the ``old_path`` prefix of every folder at or below it.

        A single bulk UPDATE; link structure and backlinks are untouched.

        Returns:
            Number of notes rewritten.
        """
        stmt = (
            update(DBNote)
            .where(DBNote.owner == owner, folder_clause(old_path))
            .values(
                folder=literal(new_path) + func.substr(DBNote.folder, len(old_path) + 1),
                updated_at=_naive_utc(utc_now()),
            )
            .execution_options(synchronize_session=False)
        )
        with self._transaction("rewrite_folder_prefix") as session:
            return session.execute(stmt).rowcount or 0
