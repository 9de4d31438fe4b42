"""Embedding models for semantic search."""

from __future__ import annotations

import logging
import threading
from typing import Callable, Dict, List, Optional

import requests

from .errors import EmbeddingError, IndexingCancelledError
from .models import CodeUnit, EmbeddingVector

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[int, int], None]


class Embedder:
    """Abstract base class for embedding models.

    Subclasses implement ``embed_texts``; batching, progress reporting and
    response validation live here so every backend behaves the same.
    """

    model_name: str = ""
    dimensions: int = 0
    batch_size: int = 32

    def embed_texts(self, texts: List[str]) -> List[List[float]]:
        """Embed multiple texts into vectors."""
        raise NotImplementedError

    def embed(self, text: str) -> List[float]:
        """Embed a single text into a vector."""
        if not text or not text.strip():
            raise ValueError("Cannot embed empty text")
        vectors = self.embed_texts([text])
        if not vectors or not vectors[0]:
            raise EmbeddingError(f"Empty embedding response from {self.model_name}")
        return vectors[0]

    def embed_batch(
        self,
        units: List[CodeUnit],
        progress: Optional[ProgressCallback] = None,
        cancel: Optional[threading.Event] = None,
    ) -> List[EmbeddingVector]:
        """Embed units' ``embedding_text`` in sequential fixed-size batches.

        Batches are not retried: any failure aborts the whole call.
        """
        if not units:
            return []

        results: List[EmbeddingVector] = []
        total = len(units)

        for start in range(0, total, self.batch_size):
            if cancel is not None and cancel.is_set():
                raise IndexingCancelledError("Embedding cancelled")

            batch = units[start : start + self.batch_size]
            vectors = self.embed_texts([u.embedding_text for u in batch])

            if len(vectors) != len(batch):
                raise EmbeddingError(
                    f"Embedding response mismatch: expected {len(batch)} embeddings, got {len(vectors)}"
                )
            for unit, vector in zip(batch, vectors):
                if not vector:
                    raise EmbeddingError(f"Zero-length embedding for unit {unit.id}")
                results.append(EmbeddingVector(unit_id=unit.id, vector=list(vector)))

            done = start + len(batch)
            logger.debug(f"Embedded {done}/{total} units")
            if progress is not None:
                progress(done, total)

        return results


class SentenceTransformersEmbedder(Embedder):
    """Embedder using SentenceTransformers library."""

    def __init__(self, model_name: str, batch_size: int = 32) -> None:
        from sentence_transformers import SentenceTransformer  # type: ignore
        self.model = SentenceTransformer(model_name)
        self.model_name = model_name
        self.dimensions = int(self.model.get_sentence_embedding_dimension() or 0)
        self.batch_size = batch_size

    def embed_texts(self, texts: List[str]) -> List[List[float]]:
        """Embed texts using SentenceTransformers model."""
        arr = self.model.encode(texts, normalize_embeddings=True, show_progress_bar=False)
        return [row.tolist() for row in arr]


class OllamaEmbedder(Embedder):
    """Embedder backed by an Ollama server's ``/api/embed`` endpoint."""

    def __init__(
        self,
        model_name: str = "nomic-embed-text",
        dimensions: int = 768,
        base_url: str = "http://localhost:11434",
        batch_size: int = 32,
        timeout: int = 120,
    ) -> None:
        if dimensions <= 0:
            raise ValueError(f"dimensions must be positive, got {dimensions}")
        if batch_size <= 0:
            raise ValueError(f"batch_size must be positive, got {batch_size}")
        self.model_name = model_name
        self.dimensions = dimensions
        self.base_url = base_url.rstrip("/")
        self.batch_size = batch_size
        self.timeout = timeout
        self.session = requests.Session()

    def embed_texts(self, texts: List[str]) -> List[List[float]]:
        response = self.session.post(
            f"{self.base_url}/api/embed",
            json={"model": self.model_name, "input": texts},
            timeout=self.timeout,
        )
        response.raise_for_status()
        data = response.json()
        embeddings = data.get("embeddings")
        if embeddings is None:
            raise EmbeddingError(f"Unexpected response format from Ollama: {list(data)}")
        return embeddings


def make_embedder(cfg: Dict) -> Embedder:
    """Create embedder from config.

    Args:
        cfg: Configuration dictionary

    Returns:
        Embedder instance

    Raises:
        ValueError: If the backend name is unknown
    """
    emb_cfg = cfg.get("embedding", {})
    backend = str(emb_cfg.get("backend", "ollama")).strip().lower()
    batch_size = int(emb_cfg.get("batch_size", 32))

    if backend == "ollama":
        return OllamaEmbedder(
            model_name=emb_cfg.get("model", "nomic-embed-text"),
            dimensions=int(emb_cfg.get("dimensions", 768)),
            base_url=emb_cfg.get("base_url", "http://localhost:11434"),
            batch_size=batch_size,
            timeout=int(emb_cfg.get("timeout", 120)),
        )
    if backend == "sentence_transformers":
        return SentenceTransformersEmbedder(
            emb_cfg.get("model", "sentence-transformers/all-MiniLM-L6-v2"),
            batch_size=batch_size,
        )
    raise ValueError(f"Unknown embedding.backend: {backend!r}")
