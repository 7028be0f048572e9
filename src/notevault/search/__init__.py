"""Semantic search: gist embeddings stored in SQLite.

Phase 1: vector search over gist embeddings with a lexical fallback.
"""

from notevault.search.embedding import EMBEDDING_DIM, EmbeddingModel, cosine_similarity
from notevault.search.engine import IndexingStats, SearchEngine, SearchResult, simple_search
from notevault.search.keyword import KeywordMatch, keyword_search
from notevault.search.vectordb import IndexStats, NoteRecord, VectorDB

__all__ = [
    "EMBEDDING_DIM",
    "EmbeddingModel",
    "IndexStats",
    "IndexingStats",
    "KeywordMatch",
    "NoteRecord",
    "SearchEngine",
    "SearchResult",
    "VectorDB",
    "cosine_similarity",
    "keyword_search",
    "simple_search",
]
