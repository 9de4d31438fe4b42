"""Storage backends: Qdrant vectors, BM25 keywords and JSON index state."""

from .base import KeywordStore, VectorStore
from .bm25 import BM25KeywordStore, make_keyword_store
from .qdrant import QdrantVectorStore, make_vector_store
from .state import IndexState, JsonIndexStateStore, ProjectIndexState, make_state_store

__all__ = [
    "KeywordStore",
    "VectorStore",
    "BM25KeywordStore",
    "QdrantVectorStore",
    "IndexState",
    "JsonIndexStateStore",
    "ProjectIndexState",
    "make_keyword_store",
    "make_state_store",
    "make_vector_store",
]
