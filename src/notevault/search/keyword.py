"""Case-insensitive keyword search over note titles, gists and bodies.

Needs no index. A note matches on its title first, then its gist, then
(unless restricted to gists) its full content.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Any

from notevault.vault.note import VaultPaths, collect_all_notes


CONTEXT_CHARS = 30
GIST_PREVIEW_CHARS = 80


@dataclass
class KeywordMatch:
    name: str
    folder: str
    field: str  # "title", "gist" or "content"
    context: str

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "folder": self.folder,
            "field": self.field,
            "context": self.context,
        }


def _truncate(text: str, limit: int) -> str:
    return text[:limit] + "..." if len(text) > limit else text


def keyword_search(
    vault_paths: VaultPaths,
    query: str,
    gist_only: bool = False,
) -> list[KeywordMatch]:
    """Every note containing the query, in note name order.

    The query is matched literally, ignoring case. An empty query matches
    nothing.
    """
    if not query:
        return []
    pattern = re.compile(re.escape(query), re.IGNORECASE)

    matches = []
    for note in collect_all_notes(vault_paths):
        gist = note.gist
        if gist and pattern.search(gist):
            match = KeywordMatch(note.name, note.folder, "gist", _truncate(gist, GIST_PREVIEW_CHARS))
        elif pattern.search(note.name):
            match = KeywordMatch(note.name, note.folder, "title", note.name)
        elif not gist_only and (found := pattern.search(note.content)):
            start = max(found.start() - CONTEXT_CHARS, 0)
            end = min(found.end() + CONTEXT_CHARS, len(note.content))
            context = note.content[start:end].replace("\n", " ")
            match = KeywordMatch(note.name, note.folder, "content", context)
        else:
            continue
        matches.append(match)
    return matches
