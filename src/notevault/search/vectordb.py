"""SQLite-backed vector store for note embeddings.

Embeddings are stored as little-endian float32 BLOBs and similarity is
computed in Python with a linear scan. That is fine for vaults of up to a
few thousand notes; an ANN index can replace `VectorDB.search` later
without changing the upsert contract.
"""

from __future__ import annotations

import json
import logging
import sqlite3
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Sequence

import numpy as np

from notevault.search.embedding import cosine_similarity


logger = logging.getLogger(__name__)


SCHEMA_SQL = """
CREATE TABLE IF NOT EXISTS notes (
  id TEXT PRIMARY KEY,
  path TEXT NOT NULL UNIQUE,
  title TEXT NOT NULL,
  gist TEXT,
  note_type TEXT,
  status TEXT,
  area TEXT,
  tags TEXT,
  mtime INTEGER NOT NULL,
  indexed_at INTEGER NOT NULL
);

CREATE TABLE IF NOT EXISTS embeddings (
  note_id TEXT PRIMARY KEY,
  embedding BLOB NOT NULL,
  FOREIGN KEY (note_id) REFERENCES notes(id) ON DELETE CASCADE
);

CREATE TABLE IF NOT EXISTS index_meta (
  key TEXT PRIMARY KEY,
  value TEXT
);

CREATE INDEX IF NOT EXISTS idx_notes_path ON notes(path);
CREATE INDEX IF NOT EXISTS idx_notes_type ON notes(note_type);
CREATE INDEX IF NOT EXISTS idx_notes_area ON notes(area);
CREATE INDEX IF NOT EXISTS idx_notes_mtime ON notes(mtime);
"""

_NOTE_COLUMNS = "id, path, title, gist, note_type, status, area, tags, mtime"


class CorruptEmbeddingError(ValueError):
    """A stored embedding BLOB is not a whole number of float32 values."""


@dataclass
class NoteRecord:
    """Note metadata stored alongside its embedding."""
    id: str
    path: str
    title: str
    gist: str | None = None
    category: str | None = None
    status: str | None = None
    area: str | None = None
    tags: list[str] = field(default_factory=list)
    mtime: int = 0


@dataclass
class IndexStats:
    document_count: int
    embedding_count: int
    last_indexed: int | None

    def to_dict(self) -> dict[str, Any]:
        return {
            "document_count": self.document_count,
            "embedding_count": self.embedding_count,
            "last_indexed": self.last_indexed,
        }


def embedding_to_blob(embedding: Sequence[float]) -> bytes:
    """Serialize an embedding as little-endian float32 bytes."""
    return np.asarray(embedding, dtype="<f4").tobytes()


def blob_to_embedding(blob: bytes) -> np.ndarray:
    """Inverse of `embedding_to_blob`.

    Raises CorruptEmbeddingError if the length is not a multiple of 4.
    """
    if len(blob) % 4:
        raise CorruptEmbeddingError(
            f"embedding blob has {len(blob)} bytes, not a multiple of 4"
        )
    return np.frombuffer(blob, dtype="<f4").astype(np.float32)


def _decode_tags(raw: str | None) -> list[str]:
    if not raw:
        return []
    try:
        tags = json.loads(raw)
    except json.JSONDecodeError:
        return []
    if not isinstance(tags, list):
        return []
    return [str(t) for t in tags]


def _row_to_record(row: Sequence[Any]) -> NoteRecord:
    return NoteRecord(
        id=row[0],
        path=row[1],
        title=row[2],
        gist=row[3],
        category=row[4],
        status=row[5],
        area=row[6],
        tags=_decode_tags(row[7]),
        mtime=int(row[8]),
    )


class VectorDB:
    """Persistent note metadata + embedding storage.

    One writer at a time; callers serialize access across processes.
    """

    def __init__(self, conn: sqlite3.Connection, path: Path | None = None) -> None:
        self.conn = conn
        self.path = path
        self.conn.execute("PRAGMA foreign_keys=ON")
        self.conn.executescript(SCHEMA_SQL)

    @classmethod
    def open(cls, db_path: str | Path) -> VectorDB:
        """Open or create the database file, creating parent directories."""
        p = Path(db_path)
        p.parent.mkdir(parents=True, exist_ok=True)
        return cls(sqlite3.connect(str(p)), path=p)

    @classmethod
    def open_in_memory(cls) -> VectorDB:
        return cls(sqlite3.connect(":memory:"))

    def close(self) -> None:
        self.conn.close()

    def __enter__(self) -> VectorDB:
        return self

    def __exit__(self, *exc: Any) -> None:
        self.close()

    # --- Notes ---

    def upsert_note(self, note: NoteRecord, embedding: Sequence[float]) -> None:
        """Insert or replace a note and its embedding in one transaction."""
        tags_json = json.dumps(list(note.tags))
        blob = embedding_to_blob(embedding)
        now = int(time.time())

        with self.conn:
            self.conn.execute(
                """
                INSERT INTO notes (id, path, title, gist, note_type, status, area, tags, mtime, indexed_at)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                ON CONFLICT(id) DO UPDATE SET
                  path = excluded.path,
                  title = excluded.title,
                  gist = excluded.gist,
                  note_type = excluded.note_type,
                  status = excluded.status,
                  area = excluded.area,
                  tags = excluded.tags,
                  mtime = excluded.mtime,
                  indexed_at = excluded.indexed_at
                """,
                (
                    note.id, note.path, note.title, note.gist, note.category,
                    note.status, note.area, tags_json, int(note.mtime), now,
                ),
            )
            self.conn.execute(
                """
                INSERT INTO embeddings (note_id, embedding)
                VALUES (?, ?)
                ON CONFLICT(note_id) DO UPDATE SET embedding = excluded.embedding
                """,
                (note.id, blob),
            )

    def delete_note(self, note_id: str) -> bool:
        """Delete a note; its embedding goes with it. Returns True if removed."""
        with self.conn:
            cur = self.conn.execute("DELETE FROM notes WHERE id = ?", (note_id,))
        return cur.rowcount > 0

    def get_note(self, note_id: str) -> NoteRecord | None:
        row = self.conn.execute(
            f"SELECT {_NOTE_COLUMNS} FROM notes WHERE id = ?", (note_id,)
        ).fetchone()
        return _row_to_record(row) if row else None

    def get_embedding(self, note_id: str) -> np.ndarray | None:
        row = self.conn.execute(
            "SELECT embedding FROM embeddings WHERE note_id = ?", (note_id,)
        ).fetchone()
        return blob_to_embedding(row[0]) if row else None

    def search(
        self,
        query_embedding: Sequence[float],
        limit: int,
    ) -> list[tuple[NoteRecord, float]]:
        """Rank every stored note by cosine similarity to the query.

        Ties are broken by note id ascending. Rows with corrupt embeddings
        are skipped with a warning.
        """
        if limit <= 0:
            return []

        rows = self.conn.execute(
            """
            SELECT n.id, n.path, n.title, n.gist, n.note_type, n.status, n.area, n.tags, n.mtime,
                   e.embedding
            FROM notes n
            JOIN embeddings e ON n.id = e.note_id
            """
        ).fetchall()

        results: list[tuple[NoteRecord, float]] = []
        for row in rows:
            try:
                embedding = blob_to_embedding(row[9])
            except CorruptEmbeddingError as e:
                logger.warning("Skipping note %s: %s", row[0], e)
                continue
            results.append((_row_to_record(row), cosine_similarity(query_embedding, embedding)))

        results.sort(key=lambda r: (-r[1], r[0].id))
        return results[:limit]

    # --- Stats and metadata ---

    def get_stats(self) -> IndexStats:
        note_count = self.conn.execute("SELECT COUNT(*) FROM notes").fetchone()[0]
        embedding_count = self.conn.execute("SELECT COUNT(*) FROM embeddings").fetchone()[0]
        last_indexed = self.conn.execute("SELECT MAX(indexed_at) FROM notes").fetchone()[0]
        return IndexStats(
            document_count=int(note_count),
            embedding_count=int(embedding_count),
            last_indexed=int(last_indexed) if last_indexed is not None else None,
        )

    def get_all_mtimes(self) -> list[tuple[str, int]]:
        """All stored note ids with their mtimes, ordered by id."""
        rows = self.conn.execute("SELECT id, mtime FROM notes ORDER BY id").fetchall()
        return [(row[0], int(row[1])) for row in rows]

    def set_meta(self, key: str, value: str) -> None:
        with self.conn:
            self.conn.execute(
                "INSERT INTO index_meta (key, value) VALUES (?, ?) "
                "ON CONFLICT(key) DO UPDATE SET value = excluded.value",
                (key, value),
            )

    def get_meta(self, key: str) -> str | None:
        row = self.conn.execute(
            "SELECT value FROM index_meta WHERE key = ?", (key,)
        ).fetchone()
        return row[0] if row else None
