"""Tests for the search engine and lexical fallback."""

from __future__ import annotations

import os
from pathlib import Path

import numpy as np
import pytest

from conftest import write_note
from notevault.search.embedding import EmbeddingModel
from notevault.search.engine import (
    EmbeddingModelError,
    IndexingStats,
    SearchEngine,
    SearchResult,
    simple_search,
)
from notevault.vault.note import Note, VaultPaths


class ExplodingModel(EmbeddingModel):
    """Raises for gists containing 'boom'."""

    def embed(self, text: str) -> np.ndarray:
        if "boom" in text:
            raise ValueError("cannot embed")
        return super().embed(text)


class CountingFactory:
    def __init__(self) -> None:
        self.calls = 0

    def __call__(self) -> EmbeddingModel:
        self.calls += 1
        return EmbeddingModel()


def failing_factory() -> EmbeddingModel:
    raise OSError("model unavailable")


@pytest.fixture
def engine(populated_vault: Path):
    eng = SearchEngine.in_memory(populated_vault)
    yield eng
    eng.close()


def bump_mtime(path: Path, seconds: int = 100) -> None:
    st = path.stat()
    os.utime(path, (st.st_atime + seconds, st.st_mtime + seconds))


class TestEndToEnd:
    def test_two_notes_indexed_and_ranked(self, tmp_vault: Path):
        notes = tmp_vault / "Notes"
        write_note(notes, "A", gist="GPU memory sharing methods")
        write_note(notes, "B", gist="cooking recipes")
        engine = SearchEngine.in_memory(tmp_vault)

        stats = engine.index_all()
        assert (stats.indexed, stats.skipped, stats.failed) == (2, 0, 0)

        results = engine.search("GPU memory", 5)
        ids = [r.id for r in results]
        assert ids.index("A") < ids.index("B")

    def test_note_without_gist_skipped(self, tmp_vault: Path):
        write_note(tmp_vault / "Notes", "empty", gist=None)
        engine = SearchEngine.in_memory(tmp_vault)

        stats = engine.index_all()
        assert stats.indexed == 0
        assert stats.skipped == 1
        assert engine.get_stats().document_count == 0

    def test_blank_gist_skipped(self, tmp_vault: Path):
        write_note(tmp_vault / "Notes", "blank", gist="   ")
        engine = SearchEngine.in_memory(tmp_vault)
        assert engine.index_all().skipped == 1
        assert engine.db.get_note("blank") is None


class TestIndexAll:
    def test_counts(self, engine: SearchEngine):
        stats = engine.index_all()
        assert stats.indexed == 2
        assert stats.skipped == 1
        assert stats.failed == 0
        assert stats.duration_ms >= 0

    def test_records_metadata(self, engine: SearchEngine):
        engine.index_all()
        assert engine.db.get_meta("indexed_count") == "2"
        assert engine.db.get_meta("last_full_index") is not None

    def test_record_fields(self, engine: SearchEngine):
        engine.index_all()
        record = engine.db.get_note("gpu-sharing")
        assert record.path == "Notes/gpu-sharing.md"
        assert record.title == "gpu-sharing"
        assert record.gist == "GPU memory sharing methods"
        assert record.category == "note"
        assert record.area == "tech"
        assert record.tags == ["gpu", "memory"]

    def test_failure_does_not_abort(self, populated_vault: Path):
        write_note(populated_vault / "Notes", "broken", gist="boom goes the note")
        engine = SearchEngine(
            VaultPaths.from_root(populated_vault),
            SearchEngine.in_memory(populated_vault).db,
            model_factory=ExplodingModel,
        )
        stats = engine.index_all()
        assert stats.failed == 1
        assert stats.indexed == 2
        assert engine.db.get_note("broken") is None

    def test_reindex_is_idempotent(self, engine: SearchEngine):
        engine.index_all()
        engine.index_all()
        stats = engine.get_stats()
        assert stats.document_count == 2
        assert stats.embedding_count == 2

    def test_removed_gist_drops_entry(self, engine: SearchEngine, populated_vault: Path):
        engine.index_all()
        write_note(populated_vault / "Notes", "recipes", gist=None)
        stats = engine.index_all()
        assert stats.skipped == 2
        assert engine.db.get_note("recipes") is None

    def test_deleted_note_pruned(self, engine: SearchEngine, populated_vault: Path):
        engine.index_all()
        (populated_vault / "Notes" / "recipes.md").unlink()
        stats = engine.index_all()
        assert stats.removed == 1
        assert engine.db.get_note("recipes") is None

    def test_unreadable_note_counted_and_kept(self, engine: SearchEngine, populated_vault: Path):
        engine.index_all()
        (populated_vault / "Notes" / "recipes.md").write_bytes(b"---\ngist: \xff\xfe bad\n---\n")
        stats = engine.index_all()
        assert stats.failed == 1
        assert stats.removed == 0
        assert stats.indexed == 1
        assert engine.db.get_note("recipes").gist == "cooking recipes"

    def test_duplicate_name_not_overwritten(self, tmp_vault: Path):
        write_note(tmp_vault / "Notes", "x", gist="from notes")
        write_note(tmp_vault / "Archive", "x", gist="from archive")
        engine = SearchEngine.in_memory(tmp_vault)
        stats = engine.index_all()
        assert stats.indexed == 1
        assert stats.failed == 1
        assert engine.get_stats().document_count == 1
        assert engine.db.get_note("x").path == "Notes/x.md"

    def test_stats_to_dict(self):
        d = IndexingStats(indexed=1, skipped=2, failed=3, duration_ms=4).to_dict()
        assert d == {
            "indexed": 1, "skipped": 2, "failed": 3,
            "unchanged": 0, "removed": 0, "duration_ms": 4,
        }


class TestIndexChanged:
    def test_first_run_indexes_everything(self, engine: SearchEngine):
        stats = engine.index_changed()
        assert stats.indexed == 2
        assert stats.skipped == 1
        assert engine.db.get_meta("last_incremental_index") is not None

    def test_unchanged_notes_skipped(self, engine: SearchEngine):
        engine.index_all()
        stats = engine.index_changed()
        assert stats.indexed == 0
        assert stats.unchanged == 2

    def test_modified_note_reindexed(self, engine: SearchEngine, populated_vault: Path):
        engine.index_all()
        path = write_note(populated_vault / "Notes", "recipes", gist="baking bread", area="life")
        bump_mtime(path)
        stats = engine.index_changed()
        assert stats.indexed == 1
        assert stats.unchanged == 1
        assert engine.db.get_note("recipes").gist == "baking bread"

    def test_deleted_note_removed(self, engine: SearchEngine, populated_vault: Path):
        engine.index_all()
        (populated_vault / "Notes" / "gpu-sharing.md").unlink()
        stats = engine.index_changed()
        assert stats.removed == 1
        assert engine.get_stats().document_count == 1


    def test_unreadable_note_not_removed(self, engine: SearchEngine, populated_vault: Path):
        engine.index_all()
        path = populated_vault / "Notes" / "gpu-sharing.md"
        path.write_bytes(b"\xff\xfe\xfa")
        bump_mtime(path)
        stats = engine.index_changed()
        assert stats.failed == 1
        assert stats.removed == 0
        assert engine.db.get_note("gpu-sharing") is not None


class TestIndexNote:
    def test_returns_true_when_indexed(self, engine: SearchEngine, populated_vault: Path):
        note = Note.load(populated_vault / "Notes" / "gpu-sharing.md")
        assert engine.index_note(note) is True
        assert engine.db.get_note("gpu-sharing") is not None

    def test_returns_false_without_gist(self, engine: SearchEngine, populated_vault: Path):
        note = Note.load(populated_vault / "Projects" / "draft.md")
        assert engine.index_note(note) is False
        assert engine.db.get_note("draft") is None


class TestLazyModel:
    def test_model_created_on_first_use(self, populated_vault: Path):
        factory = CountingFactory()
        engine = SearchEngine(
            VaultPaths.from_root(populated_vault),
            SearchEngine.in_memory(populated_vault).db,
            model_factory=factory,
        )
        assert engine.model is None
        assert factory.calls == 0

        engine.search("anything", 3)
        engine.index_all()
        engine.search("again", 3)
        assert factory.calls == 1
        assert engine.model is not None

    def test_factory_failure_is_fatal(self, populated_vault: Path):
        engine = SearchEngine(
            VaultPaths.from_root(populated_vault),
            SearchEngine.in_memory(populated_vault).db,
            model_factory=failing_factory,
        )
        with pytest.raises(EmbeddingModelError):
            engine.index_all()
        with pytest.raises(EmbeddingModelError):
            engine.search("gpu", 5)
        assert engine.get_stats().document_count == 0


class TestSearch:
    def test_results_carry_metadata(self, engine: SearchEngine):
        engine.index_all()
        results = engine.search("GPU memory", 5)
        assert isinstance(results[0], SearchResult)
        top = results[0]
        assert top.id == "gpu-sharing"
        assert top.gist == "GPU memory sharing methods"
        assert top.category == "note"
        assert top.area == "tech"
        assert -1.0 <= top.score <= 1.0 + 1e-6

    def test_limit_respected(self, engine: SearchEngine):
        engine.index_all()
        assert len(engine.search("GPU", 1)) == 1
        assert len(engine.search("GPU", 10)) == 2

    def test_empty_index(self, engine: SearchEngine):
        assert engine.search("GPU", 5) == []

    def test_to_dict_shape(self, engine: SearchEngine):
        engine.index_all()
        d = engine.search("GPU", 1)[0].to_dict()
        assert set(d) == {"id", "path", "title", "gist", "category", "area", "score"}


class TestRelated:
    def test_excludes_self(self, engine: SearchEngine):
        engine.index_all()
        results = engine.related("gpu-sharing", 5)
        assert [r.id for r in results] == ["recipes"]

    def test_unknown_note(self, engine: SearchEngine):
        engine.index_all()
        with pytest.raises(KeyError):
            engine.related("nope", 5)


class TestOpen:
    def test_open_on_disk(self, populated_vault: Path):
        db_path = populated_vault / ".notevault" / "search.db"
        engine = SearchEngine.open(populated_vault, db_path)
        engine.index_all()
        engine.close()

        reopened = SearchEngine.open(populated_vault, db_path)
        assert reopened.get_stats().document_count == 2
        assert reopened.search("cooking", 1)[0].id == "recipes"
        reopened.close()

    def test_custom_content_dirs(self, populated_vault: Path):
        engine = SearchEngine.in_memory(populated_vault, content_dirs=["Projects"])
        stats = engine.index_all()
        assert stats.indexed == 0
        assert stats.skipped == 1


class TestSimpleSearch:
    def test_only_matching_notes(self, tmp_vault: Path):
        notes = tmp_vault / "Notes"
        write_note(notes, "hit", gist="A test of the system")
        write_note(notes, "miss", gist="Nothing relevant here")
        write_note(notes, "nogist", gist=None)
        results = simple_search(VaultPaths.from_root(tmp_vault), "test", 5)
        assert [r.id for r in results] == ["hit"]
        assert results[0].score == 1.0

    def test_ranked_by_fraction_matched(self, tmp_vault: Path):
        notes = tmp_vault / "Notes"
        write_note(notes, "both", gist="GPU memory sharing")
        write_note(notes, "one", gist="GPU drivers")
        results = simple_search(VaultPaths.from_root(tmp_vault), "gpu memory", 5)
        assert [(r.id, r.score) for r in results] == [("both", 1.0), ("one", 0.5)]

    def test_substring_and_case_insensitive(self, tmp_vault: Path):
        write_note(tmp_vault / "Notes", "n", gist="Testing Strategies")
        results = simple_search(VaultPaths.from_root(tmp_vault), "TEST", 5)
        assert [r.id for r in results] == ["n"]

    def test_tie_break_and_limit(self, tmp_vault: Path):
        notes = tmp_vault / "Notes"
        for name in ("c", "a", "b"):
            write_note(notes, name, gist="test note")
        results = simple_search(VaultPaths.from_root(tmp_vault), "test", 2)
        assert [r.id for r in results] == ["a", "b"]

    def test_duplicate_names_yield_one_result(self, tmp_vault: Path):
        write_note(tmp_vault / "Notes", "x", gist="shared topic")
        write_note(tmp_vault / "Archive", "x", gist="shared topic")
        results = simple_search(VaultPaths.from_root(tmp_vault), "topic", 5)
        assert [(r.id, r.path) for r in results] == [("x", "Notes/x.md")]

    def test_empty_query(self, populated_vault: Path):
        assert simple_search(VaultPaths.from_root(populated_vault), "   ", 5) == []

    def test_writes_nothing(self, populated_vault: Path):
        simple_search(VaultPaths.from_root(populated_vault), "gpu", 5)
        assert not (populated_vault / ".notevault" / "search.db").exists()
