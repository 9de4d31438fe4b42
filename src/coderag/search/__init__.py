"""Search module for coderag."""

from .fusion import ReciprocalRankFusion
from .query import QueryPipeline, QueryResult, build_query_pipeline

__all__ = ["ReciprocalRankFusion", "QueryPipeline", "QueryResult", "build_query_pipeline"]
