"""Utility functions for the NoteGraph MCP server."""
from typing import Optional

# Folder keyword for notes that live outside any folder
ROOT_FOLDER = "root"


def escape_like_pattern(value: str) -> str:
    """Escape SQL LIKE wildcards to treat them as literals.

    Prevents SQL LIKE pattern injection where a folder path containing
    '%' or '_' could match unintended folders.

    Args:
        value: User input string that may contain LIKE wildcards

    Returns:
        String with '%', '_', and '\\' escaped for safe use in LIKE clauses

    Example:
        >>> escape_like_pattern("100% done")
        '100\\% done'
        >>> escape_like_pattern("my_folder")
        'my\\_folder'
    """
    escape_table = str.maketrans(
        {
            "\\": "\\\\",  # Escape backslash first
            "%": "\\%",
            "_": "\\_",
        }
    )
    return value.translate(escape_table)


def normalize_folder(folder: Optional[str]) -> Optional[str]:
    """Trim whitespace and outer slashes from a folder path.

    An empty result or the root keyword means the root (None).

    >>> normalize_folder(" /work/q1/ ")
    'work/q1'
    >>> normalize_folder("root") is None
    True
    """
    if folder is None:
        return None
    folder = folder.strip().strip("/").strip()
    if not folder or folder == ROOT_FOLDER:
        return None
    return folder


def is_in_folder(folder: Optional[str], path: str) -> bool:
    """Check whether a note's folder lies at or below ``path``.

    Matching is by whole path segments, so "work" covers "work" and
    "work/q1" but not "workshop".
    """
    if folder is None:
        return False
    return folder == path or folder.startswith(path + "/")


def word_count(text: str) -> int:
    """Count whitespace-delimited tokens, ignoring empty ones."""
    return len(text.split())
