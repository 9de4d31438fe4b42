"""Hybrid retrieval and answer generation."""

from __future__ import annotations

import dataclasses
import logging
from concurrent.futures import ThreadPoolExecutor
from typing import Dict, List, Optional

from ..core.embeddings import Embedder, make_embedder
from ..core.models import FusedHit
from ..prompt_builder.builder import build_answer_prompt, count_tokens
from ..prompt_builder.llm_client import GenerativeModel, make_llm_client
from ..storage.base import KeywordStore, VectorStore
from ..storage.bm25 import make_keyword_store
from ..storage.qdrant import make_vector_store
from .fusion import ReciprocalRankFusion

logger = logging.getLogger(__name__)


@dataclasses.dataclass
class QueryResult:
    question: str
    answer: Optional[str]
    sources: List[FusedHit]
    prompt_tokens: Optional[int] = None


class QueryPipeline:
    """Embed the question, search both indexes concurrently, fuse, answer.

    Retrieval asks each store for ``2 * top_k`` candidates so fusion has
    something to reorder before truncating to ``top_k``.
    """

    def __init__(
        self,
        embedder: Embedder,
        vector_store: VectorStore,
        keyword_store: KeywordStore,
        fusion: ReciprocalRankFusion,
        model: Optional[GenerativeModel] = None,
    ):
        self.embedder = embedder
        self.vector_store = vector_store
        self.keyword_store = keyword_store
        self.fusion = fusion
        self.model = model

    def retrieve(self, question: str, top_k: int = 10, project_filter: Optional[str] = None) -> List[FusedHit]:
        if not question or not question.strip():
            raise ValueError("Question must not be empty")
        if top_k <= 0:
            raise ValueError(f"top_k must be positive, got {top_k}")

        query_vector = self.embedder.embed(question)
        self.keyword_store.open()

        candidates = top_k * 2
        with ThreadPoolExecutor(max_workers=2) as pool:
            dense_future = pool.submit(self.vector_store.search, query_vector, candidates, project_filter)
            sparse_future = pool.submit(self.keyword_store.search, question, candidates, project_filter)
            dense = dense_future.result()
            sparse = sparse_future.result()

        logger.debug(f"Retrieved {len(dense)} dense and {len(sparse)} keyword candidates")
        return self.fusion.fuse(dense, sparse, top_k)

    def query(
        self,
        question: str,
        top_k: int = 10,
        use_model: bool = True,
        project_filter: Optional[str] = None,
    ) -> QueryResult:
        hits = self.retrieve(question, top_k=top_k, project_filter=project_filter)

        if not hits:
            logger.info("No matching code units; skipping answer generation")
            return QueryResult(question=question, answer=None, sources=[])

        if not use_model or self.model is None:
            return QueryResult(question=question, answer=None, sources=hits)

        prompt = build_answer_prompt(question, hits)
        prompt_tokens = count_tokens(prompt)
        logger.info(f"Asking {self.model.model_name} with {len(hits)} sources ({prompt_tokens} prompt tokens)")
        answer = self.model.generate(prompt)
        return QueryResult(question=question, answer=answer, sources=hits, prompt_tokens=prompt_tokens)


def build_query_pipeline(cfg: Dict, with_model: bool = True) -> QueryPipeline:
    search_cfg = cfg.get("search", {})
    return QueryPipeline(
        embedder=make_embedder(cfg),
        vector_store=make_vector_store(cfg),
        keyword_store=make_keyword_store(cfg),
        fusion=ReciprocalRankFusion(k=int(search_cfg.get("rrf_k", 60))),
        model=make_llm_client(cfg) if with_model else None,
    )
