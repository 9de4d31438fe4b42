"""Query routes."""

import logging
import time

from fastapi import APIRouter, Depends, HTTPException

from ...search.query import QueryPipeline
from ...storage.state import JsonIndexStateStore
from ..deps import get_query_pipeline, get_state_store
from ..schemas import QueryRequest, QueryResponse, SourceResponse

logger = logging.getLogger(__name__)

router = APIRouter(tags=["search"])


@router.post("/query", response_model=QueryResponse)
def query(
    request: QueryRequest,
    pipeline: QueryPipeline = Depends(get_query_pipeline),
    state_store: JsonIndexStateStore = Depends(get_state_store),
):
    """Hybrid search, optionally answered by the generative model."""
    project_filter = None
    if request.project_path:
        existing = state_store.load(request.project_path)
        if existing is None:
            raise HTTPException(status_code=404, detail=f"Project not indexed: {request.project_path}")
        project_filter = existing.project_id

    start_time = time.time()
    try:
        result = pipeline.query(
            request.question,
            top_k=request.top_k,
            use_model=request.use_model,
            project_filter=project_filter,
        )
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    time_taken = time.time() - start_time
    logger.info(f"Query returned {len(result.sources)} sources in {time_taken:.2f}s")

    return QueryResponse(
        question=result.question,
        answer=result.answer,
        sources=[
            SourceResponse(
                unit_id=hit.unit_id,
                file_path=hit.file_path,
                start_line=hit.start_line,
                end_line=hit.end_line,
                label=hit.label,
                fused_score=hit.fused_score,
                vector_score=hit.vector_score,
                keyword_score=hit.keyword_score,
                body=hit.body,
            )
            for hit in result.sources
        ],
        prompt_tokens=result.prompt_tokens,
        time_taken=time_taken,
    )
