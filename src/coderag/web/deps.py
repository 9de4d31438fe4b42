"""Shared, lazily built components for the HTTP layer.

Each getter is cached so the embedding model and store clients are created
once per process. Tests swap them through ``app.dependency_overrides``.
"""

from functools import lru_cache
from typing import Dict

from ..config import load_config
from ..indexing.pipeline import IndexingPipeline, build_indexing_pipeline
from ..prompt_builder.llm_client import make_llm_client
from ..search.fusion import ReciprocalRankFusion
from ..search.query import QueryPipeline
from ..storage.base import KeywordStore, VectorStore
from ..storage.state import JsonIndexStateStore
from .jobs import JobRegistry


@lru_cache(maxsize=1)
def get_config() -> Dict:
    return load_config()


@lru_cache(maxsize=1)
def get_indexing_pipeline() -> IndexingPipeline:
    return build_indexing_pipeline(get_config())


@lru_cache(maxsize=1)
def get_query_pipeline() -> QueryPipeline:
    cfg = get_config()
    # one embedder and one set of store clients across both pipelines
    indexing = get_indexing_pipeline()
    return QueryPipeline(
        embedder=indexing.embedder,
        vector_store=indexing.vector_store,
        keyword_store=indexing.keyword_store,
        fusion=ReciprocalRankFusion(k=int(cfg["search"].get("rrf_k", 60))),
        model=make_llm_client(cfg),
    )


def get_vector_store() -> VectorStore:
    return get_indexing_pipeline().vector_store


def get_keyword_store() -> KeywordStore:
    return get_indexing_pipeline().keyword_store


def get_state_store() -> JsonIndexStateStore:
    return get_indexing_pipeline().state_store


@lru_cache(maxsize=1)
def get_job_registry() -> JobRegistry:
    return JobRegistry()
