"""Search engine: embedding model + vector database over a vault.

Only notes with a gist are indexed. The embedding model is created on the
first operation that needs it and reused afterwards.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable

from notevault.search.embedding import EmbeddingModel
from notevault.search.vectordb import IndexStats, NoteRecord, VectorDB
from notevault.vault.note import Note, NoteScan, VaultPaths, collect_all_notes, scan_notes


logger = logging.getLogger(__name__)


class EmbeddingModelError(RuntimeError):
    """The embedding model could not be constructed."""


@dataclass
class SearchResult:
    """A matching note with its similarity score."""
    id: str
    path: str
    title: str
    gist: str | None
    category: str | None
    area: str | None
    score: float

    @classmethod
    def from_record(cls, record: NoteRecord, score: float) -> SearchResult:
        return cls(
            id=record.id,
            path=record.path,
            title=record.title,
            gist=record.gist,
            category=record.category,
            area=record.area,
            score=float(score),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "path": self.path,
            "title": self.title,
            "gist": self.gist,
            "category": self.category,
            "area": self.area,
            "score": self.score,
        }


@dataclass
class IndexingStats:
    indexed: int = 0
    skipped: int = 0
    failed: int = 0
    unchanged: int = 0
    removed: int = 0
    duration_ms: int = 0

    def to_dict(self) -> dict[str, int]:
        return {
            "indexed": self.indexed,
            "skipped": self.skipped,
            "failed": self.failed,
            "unchanged": self.unchanged,
            "removed": self.removed,
            "duration_ms": self.duration_ms,
        }


class SearchEngine:
    """Indexes vault notes into a VectorDB and answers similarity queries."""

    def __init__(
        self,
        vault_paths: VaultPaths,
        db: VectorDB,
        model_factory: Callable[[], EmbeddingModel] = EmbeddingModel,
    ) -> None:
        self.vault_paths = vault_paths
        self.db = db
        self.model_factory = model_factory
        self.model: EmbeddingModel | None = None

    @classmethod
    def open(
        cls,
        vault_root: Path,
        db_path: Path,
        content_dirs: tuple[str, ...] | list[str] | None = None,
    ) -> SearchEngine:
        """Open an engine over a vault with an on-disk database."""
        return cls(VaultPaths.from_root(vault_root, content_dirs), VectorDB.open(db_path))

    @classmethod
    def in_memory(
        cls,
        vault_root: Path,
        content_dirs: tuple[str, ...] | list[str] | None = None,
    ) -> SearchEngine:
        return cls(VaultPaths.from_root(vault_root, content_dirs), VectorDB.open_in_memory())

    def close(self) -> None:
        self.db.close()

    def _ensure_model(self) -> EmbeddingModel:
        if self.model is None:
            try:
                self.model = self.model_factory()
            except Exception as e:
                raise EmbeddingModelError(f"Failed to load embedding model: {e}") from e
        return self.model

    # --- Search ---

    def search(self, query: str, limit: int = 5) -> list[SearchResult]:
        """Return the notes whose gists are most similar to the query."""
        model = self._ensure_model()
        query_embedding = model.embed(query)
        return [
            SearchResult.from_record(record, score)
            for record, score in self.db.search(query_embedding, limit)
        ]

    def related(self, note_id: str, limit: int = 5) -> list[SearchResult]:
        """Indexed notes nearest to an already-indexed note, excluding itself.

        Raises KeyError if the note is not in the index.
        """
        embedding = self.db.get_embedding(note_id)
        if embedding is None:
            raise KeyError(note_id)
        return [
            SearchResult.from_record(record, score)
            for record, score in self.db.search(embedding, limit + 1)
            if record.id != note_id
        ][:limit]

    # --- Indexing ---

    def index_all(self) -> IndexingStats:
        """Index every note in the vault.

        A failure on one note is logged and counted; the run continues.
        Entries for notes no longer in the vault are removed.
        """
        start = time.monotonic()
        self._ensure_model()

        scan = scan_notes(self.vault_paths)
        stats = IndexingStats()
        for note in scan.notes:
            self._index_counted(note, stats)
        stats.removed = self._prune(scan, stats)
        stats.duration_ms = int((time.monotonic() - start) * 1000)

        self.db.set_meta("indexed_count", str(stats.indexed))
        self.db.set_meta("last_full_index", str(int(time.time())))
        logger.info(
            "Indexed %d notes (%d skipped, %d failed, %d removed) in %d ms",
            stats.indexed, stats.skipped, stats.failed, stats.removed, stats.duration_ms,
        )
        return stats

    def index_changed(self) -> IndexingStats:
        """Re-index only notes whose mtime differs from the stored one."""
        start = time.monotonic()
        self._ensure_model()

        stored = dict(self.db.get_all_mtimes())
        scan = scan_notes(self.vault_paths)
        stats = IndexingStats()
        for note in scan.notes:
            if stored.get(note.name) == note.modified and note.gist:
                stats.unchanged += 1
                continue
            self._index_counted(note, stats)
        stats.removed = self._prune(scan, stats)
        stats.duration_ms = int((time.monotonic() - start) * 1000)

        self.db.set_meta("last_incremental_index", str(int(time.time())))
        logger.info(
            "Incremental index: %d indexed, %d unchanged, %d removed",
            stats.indexed, stats.unchanged, stats.removed,
        )
        return stats

    def index_note(self, note: Note) -> bool:
        """Embed a note's gist and store it.

        Returns False (and drops any stale entry) when the note has no gist.
        """
        gist = note.gist
        if not gist:
            self.db.delete_note(note.name)
            return False

        model = self._ensure_model()
        embedding = model.embed(gist)

        record = NoteRecord(
            id=note.name,
            path=self._relative_path(note.path),
            title=note.name,
            gist=gist,
            category=note.note_type,
            status=note.status,
            area=note.area,
            tags=note.tags,
            mtime=note.modified,
        )
        self.db.upsert_note(record, embedding)
        return True

    def get_stats(self) -> IndexStats:
        return self.db.get_stats()

    def _index_counted(self, note: Note, stats: IndexingStats) -> None:
        try:
            if self.index_note(note):
                stats.indexed += 1
            else:
                stats.skipped += 1
        except Exception as e:
            logger.warning("Failed to index %s: %s", note.name, e)
            stats.failed += 1

    def _prune(self, scan: NoteScan, stats: IndexingStats) -> int:
        """Count scan failures and delete entries for notes gone from the vault.

        A note that failed to load keeps its existing entry.
        """
        for failure in scan.failures:
            logger.warning("Failed to load %s: %s", failure.path, failure.error)
            stats.failed += 1
        present = {n.name for n in scan.notes} | {f.name for f in scan.failures}
        removed = 0
        for note_id, _ in self.db.get_all_mtimes():
            if note_id not in present and self.db.delete_note(note_id):
                removed += 1
        return removed

    def _relative_path(self, path: Path) -> str:
        try:
            return path.relative_to(self.vault_paths.root).as_posix()
        except ValueError:
            return str(path)


def simple_search(vault_paths: VaultPaths, query: str, limit: int = 5) -> list[SearchResult]:
    """Lexical fallback search over note gists.

    Scores each note by the fraction of query terms found as substrings of
    its lowercased gist. Needs no index and writes nothing.
    """
    terms = query.lower().split()
    if not terms or limit <= 0:
        return []

    results = []
    for note in collect_all_notes(vault_paths):
        gist = note.gist
        if not gist:
            continue
        gist_lower = gist.lower()
        matched = sum(1 for term in terms if term in gist_lower)
        if matched == 0:
            continue
        try:
            path = note.path.relative_to(vault_paths.root).as_posix()
        except ValueError:
            path = str(note.path)
        results.append(SearchResult(
            id=note.name,
            path=path,
            title=note.name,
            gist=gist,
            category=note.note_type,
            area=note.area,
            score=matched / len(terms),
        ))

    results.sort(key=lambda r: (-r.score, r.id))
    return results[:limit]
