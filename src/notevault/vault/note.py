"""Vault notes: loading, collection, and tag-based relations."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path

from notevault.vault.frontmatter import Frontmatter


logger = logging.getLogger(__name__)

DEFAULT_CONTENT_DIRS = ("Notes", "Projects", "Archive")


@dataclass
class VaultPaths:
    """Folder layout of a vault."""
    root: Path
    content_dir_names: tuple[str, ...] = DEFAULT_CONTENT_DIRS

    @classmethod
    def from_root(
        cls,
        root: Path,
        content_dirs: tuple[str, ...] | list[str] | None = None,
    ) -> VaultPaths:
        names = tuple(content_dirs) if content_dirs else DEFAULT_CONTENT_DIRS
        return cls(root=Path(root), content_dir_names=names)

    def content_dirs(self) -> list[Path]:
        return [self.root / name for name in self.content_dir_names]


@dataclass
class Note:
    """A markdown note loaded from the vault."""
    path: Path
    name: str
    content: str
    frontmatter: Frontmatter | None = None
    modified: int = 0

    @classmethod
    def load(cls, path: Path) -> Note:
        """Read a note from disk. Raises OSError/UnicodeDecodeError."""
        content = path.read_text(encoding="utf-8")
        return cls(
            path=path,
            name=path.stem,
            content=content,
            frontmatter=Frontmatter.parse(content),
            modified=int(path.stat().st_mtime),
        )

    @property
    def folder(self) -> str:
        return self.path.parent.name

    @property
    def gist(self) -> str | None:
        return self.frontmatter.gist if self.frontmatter else None

    @property
    def note_type(self) -> str | None:
        return self.frontmatter.note_type if self.frontmatter else None

    @property
    def status(self) -> str | None:
        return self.frontmatter.status if self.frontmatter else None

    @property
    def area(self) -> str | None:
        return self.frontmatter.area if self.frontmatter else None

    @property
    def tags(self) -> list[str]:
        return list(self.frontmatter.tags) if self.frontmatter else []


@dataclass
class NoteFailure:
    """A note file that could not be turned into a Note."""
    path: Path
    name: str
    error: str


@dataclass
class NoteScan:
    notes: list[Note] = field(default_factory=list)
    failures: list[NoteFailure] = field(default_factory=list)


def scan_notes(paths: VaultPaths) -> NoteScan:
    """Load every *.md note directly inside the vault content folders.

    Note names are unique: when two folders hold a note with the same
    stem, the one in the earlier content folder wins and the other is
    reported as a failure. Unreadable files are reported as failures too.
    Notes are sorted by name.
    """
    scan = NoteScan()
    seen: dict[str, Path] = {}
    for directory in paths.content_dirs():
        if not directory.is_dir():
            continue
        for entry in sorted(directory.glob("*.md")):
            if not entry.is_file():
                continue
            if entry.stem in seen:
                scan.failures.append(NoteFailure(
                    path=entry,
                    name=entry.stem,
                    error=f"duplicate note name, already loaded from {seen[entry.stem]}",
                ))
                continue
            seen[entry.stem] = entry
            try:
                scan.notes.append(Note.load(entry))
            except (OSError, UnicodeDecodeError) as e:
                scan.failures.append(NoteFailure(path=entry, name=entry.stem, error=str(e)))

    scan.notes.sort(key=lambda n: n.name)
    return scan


def collect_all_notes(paths: VaultPaths) -> list[Note]:
    """The notes from scan_notes; failures are logged and left out."""
    scan = scan_notes(paths)
    for failure in scan.failures:
        logger.warning("Skipping note %s: %s", failure.path, failure.error)
    return scan.notes


@dataclass
class RelatedNote:
    name: str
    shared_tags: list[str] = field(default_factory=list)

    @property
    def shared_count(self) -> int:
        return len(self.shared_tags)


def related_notes(notes: list[Note], name: str, min_tags: int = 1) -> list[RelatedNote]:
    """Notes sharing at least `min_tags` tags with the named note.

    Sorted by shared tag count descending, then name. Raises KeyError if
    the note does not exist.
    """
    target = next((n for n in notes if n.name == name), None)
    if target is None:
        raise KeyError(name)

    target_tags = set(target.tags)
    if not target_tags:
        return []

    related = []
    for note in notes:
        if note.name == name:
            continue
        shared = sorted(target_tags.intersection(note.tags))
        if len(shared) >= min_tags:
            related.append(RelatedNote(name=note.name, shared_tags=shared))

    related.sort(key=lambda r: (-r.shared_count, r.name))
    return related
