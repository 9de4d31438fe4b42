"""Abstract storage interfaces for the dense and keyword indexes."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Iterable, List, Optional

from ..core.models import CodeUnit, EmbeddingVector, SearchHit


class VectorStore(ABC):
    """Abstract base class for vector storage backends."""

    @abstractmethod
    def ensure_collection(self, dimensions: int) -> None:
        """Create the collection if missing; fail if its dimension differs."""
        pass

    @abstractmethod
    def upsert(self, units: List[CodeUnit], vectors: List[EmbeddingVector]) -> None:
        """Insert or replace points for ``units`` (matched to vectors by unit id)."""
        pass

    @abstractmethod
    def search(
        self,
        query_vector: List[float],
        top_k: int,
        project_id: Optional[str] = None,
    ) -> List[SearchHit]:
        """Nearest neighbours, best first."""
        pass

    @abstractmethod
    def delete_by_files(self, project_id: str, file_paths: Iterable[str]) -> None:
        pass

    @abstractmethod
    def delete_by_project(self, project_id: str) -> None:
        pass

    @abstractmethod
    def delete_collection(self) -> None:
        pass

    @abstractmethod
    def count_points(self, project_id: Optional[str] = None) -> int:
        pass


class KeywordStore(ABC):
    """Abstract base class for keyword (sparse) index backends."""

    @abstractmethod
    def open(self) -> None:
        """Load persisted state. Safe to call more than once."""
        pass

    @abstractmethod
    def index(self, units: List[CodeUnit]) -> None:
        """Add or replace documents for ``units``."""
        pass

    @abstractmethod
    def search(self, text: str, top_k: int, project_id: Optional[str] = None) -> List[SearchHit]:
        pass

    @abstractmethod
    def delete_by_files(self, project_id: str, file_paths: Iterable[str]) -> None:
        pass

    @abstractmethod
    def delete_by_project(self, project_id: str) -> None:
        pass

    @abstractmethod
    def delete_all(self) -> None:
        pass
