"""Data models for coderag."""

from __future__ import annotations

import dataclasses
from enum import Enum
from typing import List, Optional


class UnitKind(str, Enum):
    """Granularity of an extracted code unit."""

    METHOD = "method"
    CONSTRUCTOR = "constructor"
    TYPE_HEADER = "type_header"


@dataclasses.dataclass
class CodeUnit:
    """One class header, method or constructor extracted from a source file.

    ``embedding_text`` is what gets embedded and keyword-indexed: the body
    prefixed with a short comment preamble (file, namespace, type,
    dependencies, attributes). ``part_index``/``total_parts`` are only set on
    units produced by splitting an oversized unit.
    """

    id: str
    project_id: str
    file_path: str
    namespace: str
    type_name: str
    member_name: str
    signature: str
    kind: UnitKind
    start_line: int
    end_line: int
    body: str
    embedding_text: str
    attributes: List[str] = dataclasses.field(default_factory=list)
    dependencies: List[str] = dataclasses.field(default_factory=list)
    base_types: List[str] = dataclasses.field(default_factory=list)
    part_index: Optional[int] = None
    total_parts: Optional[int] = None

    @property
    def label(self) -> str:
        if self.member_name:
            return f"{self.type_name}.{self.member_name}"
        return self.type_name


@dataclasses.dataclass
class EmbeddingVector:
    unit_id: str
    vector: List[float]


@dataclasses.dataclass
class SearchHit:
    """A single hit from one store's native ranking."""

    unit_id: str
    score: float
    project_id: str
    file_path: str
    type_name: str
    member_name: str
    start_line: int
    end_line: int
    body: Optional[str] = None
    embedding_text: Optional[str] = None


@dataclasses.dataclass
class FusedHit:
    """A hit after Reciprocal Rank Fusion.

    ``vector_score`` / ``keyword_score`` are None when the unit was absent
    from that source list.
    """

    unit_id: str
    fused_score: float
    vector_score: Optional[float]
    keyword_score: Optional[float]
    project_id: str
    file_path: str
    type_name: str
    member_name: str
    start_line: int
    end_line: int
    body: Optional[str] = None
    embedding_text: Optional[str] = None

    @property
    def label(self) -> str:
        if self.member_name:
            return f"{self.type_name}.{self.member_name}"
        return self.type_name
