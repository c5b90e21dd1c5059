"""Extraction of [[Title]] references from note text."""
import re
from typing import List

# Non-greedy: a span ends at the first "]]", line breaks included.
LINK_PATTERN = re.compile(r"\[\[(.*?)\]\]", re.DOTALL)


def extract_link_titles(text: str) -> List[str]:
    """Return the titles referenced by ``text``.

    Titles are trimmed, empty ones dropped, and each distinct title is
    kept once in order of first occurrence. Unmatched or malformed brackets
    are simply not links.

    >>> extract_link_titles("See [[Alpha]], [[ Beta ]] and [[Alpha]] again")
    ['Alpha', 'Beta']
    """
    titles: List[str] = []
    seen = set()
    for match in LINK_PATTERN.finditer(text or ""):
        title = match.group(1).strip()
        if title and title not in seen:
            seen.add(title)
            titles.append(title)
    return titles


def normalize_title(title: str) -> str:
    """Key used to resolve a link title against note titles.

    Resolution is case-insensitive everywhere: the graph builder, the
    backlink index and the stored ``title_key`` column all use this.
    """
    return title.strip().casefold()


def link_keys(text: str) -> List[str]:
    """Normalized, de-duplicated link keys of ``text`` in first-seen order."""
    keys: List[str] = []
    for title in extract_link_titles(text):
        key = normalize_title(title)
        if key not in keys:
            keys.append(key)
    return keys
