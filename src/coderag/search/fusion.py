"""Reciprocal Rank Fusion of dense and keyword result lists."""

from __future__ import annotations

from typing import Dict, List

from ..core.models import FusedHit, SearchHit


class ReciprocalRankFusion:
    """Combine ranked lists by summing ``1 / (k + rank + 1)`` per unit.

    Only ranks matter, so raw scores from different retrievers never need to
    be comparable. Raw scores are kept on the fused hit for display.
    """

    def __init__(self, k: int = 60):
        if k <= 0:
            raise ValueError(f"k must be positive, got {k}")
        self.k = k

    def fuse(self, dense: List[SearchHit], sparse: List[SearchHit], top_k: int) -> List[FusedHit]:
        if top_k <= 0:
            raise ValueError(f"top_k must be positive, got {top_k}")

        # dicts keep insertion order: dense order first, then sparse-only hits
        fused: Dict[str, FusedHit] = {}

        for rank, hit in enumerate(dense):
            entry = fused.get(hit.unit_id)
            if entry is None:
                entry = fused[hit.unit_id] = _from_hit(hit)
            entry.fused_score += 1.0 / (self.k + rank + 1)
            entry.vector_score = hit.score

        for rank, hit in enumerate(sparse):
            entry = fused.get(hit.unit_id)
            if entry is None:
                entry = fused[hit.unit_id] = _from_hit(hit)
            entry.fused_score += 1.0 / (self.k + rank + 1)
            entry.keyword_score = hit.score

        ranked = sorted(fused.values(), key=lambda h: h.fused_score, reverse=True)
        return ranked[:top_k]


def _from_hit(hit: SearchHit) -> FusedHit:
    return FusedHit(
        unit_id=hit.unit_id,
        fused_score=0.0,
        vector_score=None,
        keyword_score=None,
        project_id=hit.project_id,
        file_path=hit.file_path,
        type_name=hit.type_name,
        member_name=hit.member_name,
        start_line=hit.start_line,
        end_line=hit.end_line,
        body=hit.body,
        embedding_text=hit.embedding_text,
    )
