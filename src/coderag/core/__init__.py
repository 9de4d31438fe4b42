"""Core functionality for coderag."""

from .models import CodeUnit, EmbeddingVector, FusedHit, SearchHit, UnitKind
from .splitting import UnitSplitter
from .embeddings import Embedder, OllamaEmbedder, SentenceTransformersEmbedder, make_embedder

__all__ = [
    "CodeUnit",
    "EmbeddingVector",
    "FusedHit",
    "SearchHit",
    "UnitKind",
    "UnitSplitter",
    "Embedder",
    "OllamaEmbedder",
    "SentenceTransformersEmbedder",
    "make_embedder",
]
