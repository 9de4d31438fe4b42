"""Index status, reset and dependency health routes."""

from typing import Dict

from fastapi import APIRouter, Depends, Response

from ...health import check_health
from ...storage.base import KeywordStore, VectorStore
from ...storage.maintenance import collect_status, reset_index
from ...storage.state import JsonIndexStateStore
from ..deps import get_config, get_keyword_store, get_state_store, get_vector_store
from ..schemas import (
    HealthCheckResponse,
    HealthResponse,
    ProjectStatusResponse,
    ResetOutcomeResponse,
    ResetRequest,
    ResetResponse,
    StatusResponse,
)

router = APIRouter(tags=["status"])


@router.get("/status", response_model=StatusResponse)
def status(
    state_store: JsonIndexStateStore = Depends(get_state_store),
    vector_store: VectorStore = Depends(get_vector_store),
):
    result = collect_status(state_store, vector_store)
    return StatusResponse(
        projects=[
            ProjectStatusResponse(
                project_path=p.project_path,
                project_id=p.project_id,
                last_indexed_revision=p.last_indexed_revision,
                indexed_at=p.indexed_at,
                total_units=p.total_units,
                total_files=p.total_files,
                embedding_model=p.embedding_model,
                embedding_dimensions=p.embedding_dimensions,
            )
            for p in result.projects
        ],
        vector_points=result.vector_points,
        vector_error=result.vector_error,
    )


@router.post("/reset", response_model=ResetResponse)
def reset(
    request: ResetRequest,
    state_store: JsonIndexStateStore = Depends(get_state_store),
    vector_store: VectorStore = Depends(get_vector_store),
    keyword_store: KeywordStore = Depends(get_keyword_store),
):
    """Delete index data for one project, or everything when no path is given."""
    report = reset_index(vector_store, keyword_store, state_store, project_path=request.project_path)
    return ResetResponse(
        ok=report.ok,
        outcomes=[ResetOutcomeResponse(target=o.target, ok=o.ok, error=o.error) for o in report.outcomes],
    )


@router.get("/health", response_model=HealthResponse)
def health(response: Response, cfg: Dict = Depends(get_config)):
    """Check that Qdrant and the configured Ollama models are available."""
    report = check_health(cfg)
    if not report.ok:
        response.status_code = 503
    return HealthResponse(
        ok=report.ok,
        checks=[HealthCheckResponse(name=c.name, ok=c.ok, detail=c.detail) for c in report.checks],
    )
