"""SQLAlchemy database models for the NoteGraph MCP server."""
import datetime
from typing import Optional

from sqlalchemy import (Column, DateTime, ForeignKey, Index, String, Table, Text,
                        create_engine, event)
from sqlalchemy.engine import Engine
from sqlalchemy.orm import declarative_base, sessionmaker
from sqlalchemy.pool import QueuePool, StaticPool

from notegraph_mcp.config import config

# Create base class for SQLAlchemy models
Base = declarative_base()

# Backlink sets: one row per (linked note, linking note). The composite
# primary key makes each note's set duplicate-free at the storage level.
backlinks = Table(
    "backlinks",
    Base.metadata,
    Column("note_id", String(255), ForeignKey("notes.id"), primary_key=True),
    Column("source_id", String(255), primary_key=True, index=True),
)


class DBNote(Base):
    """Database model for a note."""
    __tablename__ = "notes"
    id = Column(String(255), primary_key=True, index=True)
    owner = Column(String(255), nullable=False, index=True)
    title = Column(String(500), nullable=False)
    # Casefolded title, the key every [[link]] resolves against
    title_key = Column(String(500), nullable=False)
    content = Column(Text, nullable=False, default="")
    folder = Column(String(1024), nullable=True, index=True)
    created_at = Column(DateTime, default=datetime.datetime.now, nullable=False)
    updated_at = Column(DateTime, default=datetime.datetime.now, nullable=False)

    __table_args__ = (
        Index("ix_notes_owner_title_key", "owner", "title_key"),
    )

    def __repr__(self) -> str:
        """Return string representation of note."""
        return f"<Note(id='{self.id}', title='{self.title}')>"


def init_db(db_url: Optional[str] = None) -> Engine:
    """Create the engine and schema.

    File databases get WAL journaling, NORMAL sync and a small QueuePool.
    The in-memory URL ("sqlite://") gets a StaticPool so every session
    sees the same database.
    """
    url = db_url or config.get_db_url()

    if url in ("sqlite://", "sqlite:///:memory:"):
        engine = create_engine(
            url,
            poolclass=StaticPool,
            connect_args={"check_same_thread": False},
        )
    else:
        engine = create_engine(
            url,
            poolclass=QueuePool,
            pool_size=5,
            max_overflow=10,
            pool_timeout=30,
            pool_pre_ping=True,
        )

        @event.listens_for(engine, "connect")
        def set_sqlite_pragma(dbapi_connection, connection_record):
            cursor = dbapi_connection.cursor()
            cursor.execute("PRAGMA journal_mode=WAL")
            cursor.execute("PRAGMA synchronous=NORMAL")
            cursor.execute("PRAGMA busy_timeout=5000")
            cursor.close()

    Base.metadata.create_all(engine)
    return engine


def get_session_factory(engine: Engine):
    """Get a session factory for the database."""
    return sessionmaker(bind=engine)
