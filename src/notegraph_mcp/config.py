"""Configuration module for the NoteGraph MCP server."""

import logging
import os
from pathlib import Path

from dotenv import load_dotenv
from pydantic import BaseModel, Field, model_validator

from notegraph_mcp import __version__

# Load environment variables from the project root .env file.
# Anchored to __file__ so it works regardless of the process CWD.
_PROJECT_ROOT = Path(__file__).resolve().parent.parent.parent
load_dotenv(_PROJECT_ROOT / ".env")

# User-level config, lives alongside the default database
_USER_ENV = Path.home() / ".notegraph" / ".env"
load_dotenv(_USER_ENV)


logger = logging.getLogger(__name__)


def _env_bool(name: str, default: str) -> bool:
    return os.getenv(name, default).lower() in ("true", "1", "yes")


class NoteGraphConfig(BaseModel):
    """Configuration for the NoteGraph server."""

    # Base directory for the project
    base_dir: Path = Field(
        default_factory=lambda: Path(os.getenv("NOTEGRAPH_BASE_DIR", "."))
    )
    # Database configuration
    database_path: Path = Field(
        default_factory=lambda: Path(
            os.getenv("NOTEGRAPH_DATABASE_PATH", "data/db/notegraph.db")
        )
    )
    # When True, uses an in-memory SQLite database (nothing survives a restart)
    in_memory_db: bool = Field(
        default_factory=lambda: _env_bool("NOTEGRAPH_IN_MEMORY_DB", "false")
    )
    # Server configuration
    server_name: str = Field(default=os.getenv("NOTEGRAPH_SERVER_NAME", "notegraph-mcp"))
    server_version: str = Field(default=__version__)
    # Opaque owner identity the server acts as. Supplied by whatever
    # authenticates the caller; every note operation is scoped to it.
    owner: str = Field(default_factory=lambda: os.getenv("NOTEGRAPH_OWNER", "local"))

    # Graph presentation. hub_threshold drives the "hub" class, the full
    # color tier and the hub-count statistic alike.
    hub_threshold: int = Field(
        default_factory=lambda: int(os.getenv("NOTEGRAPH_HUB_THRESHOLD", "5"))
    )
    connected_threshold: int = Field(
        default_factory=lambda: int(os.getenv("NOTEGRAPH_CONNECTED_THRESHOLD", "2"))
    )
    min_node_size: int = Field(default=40)
    max_node_size: int = Field(default=120)
    node_size_step: int = Field(default=8)

    # Layout canvas
    canvas_center_x: float = Field(default=400.0)
    canvas_center_y: float = Field(default=300.0)
    layout_radius: float = Field(default=200.0)

    @model_validator(mode="after")
    def _validate_graph_config(self) -> "NoteGraphConfig":
        """Reject presentation settings that would make node classes overlap."""
        if self.connected_threshold < 1:
            raise ValueError("connected_threshold must be >= 1")
        if self.connected_threshold >= self.hub_threshold:
            raise ValueError("connected_threshold must be lower than hub_threshold")
        if self.min_node_size > self.max_node_size:
            raise ValueError("min_node_size must not exceed max_node_size")
        if self.layout_radius <= 0:
            raise ValueError("layout_radius must be positive")
        return self

    def get_absolute_path(self, path: Path) -> Path:
        """Convert a relative path to an absolute path based on base_dir."""
        if path.is_absolute():
            return path
        return self.base_dir / path

    def get_db_url(self) -> str:
        """Get the database URL for SQLite."""
        if self.in_memory_db:
            return "sqlite://"
        db_path = self.get_absolute_path(self.database_path)
        db_path.parent.mkdir(parents=True, exist_ok=True)
        return f"sqlite:///{db_path}"


# Create a global config instance
config = NoteGraphConfig()
