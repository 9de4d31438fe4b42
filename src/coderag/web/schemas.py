from pydantic import BaseModel
from datetime import datetime
from typing import Optional, List


class IndexRequest(BaseModel):
    project_path: str
    force_full: bool = False
    # False runs the job in the background; poll or stream its progress
    wait: bool = True


class IndexReportResponse(BaseModel):
    mode: str
    revision: Optional[str]
    units_indexed: int
    files_indexed: int
    files_deleted: int
    elapsed: float


class IndexJobResponse(BaseModel):
    job_id: str
    project_path: str
    status: str
    messages: List[str] = []
    embedded: int = 0
    embed_total: int = 0
    report: Optional[IndexReportResponse] = None
    error: Optional[str] = None


class QueryRequest(BaseModel):
    question: str
    top_k: int = 10
    use_model: bool = True
    project_path: Optional[str] = None


class SourceResponse(BaseModel):
    unit_id: str
    file_path: str
    start_line: int
    end_line: int
    label: str
    fused_score: float
    vector_score: Optional[float] = None
    keyword_score: Optional[float] = None
    body: Optional[str] = None


class QueryResponse(BaseModel):
    question: str
    answer: Optional[str] = None
    sources: List[SourceResponse]
    prompt_tokens: Optional[int] = None
    time_taken: float


class ProjectStatusResponse(BaseModel):
    project_path: str
    project_id: str
    last_indexed_revision: Optional[str]
    indexed_at: datetime
    total_units: int
    total_files: int
    embedding_model: str
    embedding_dimensions: int


class StatusResponse(BaseModel):
    projects: List[ProjectStatusResponse]
    vector_points: Optional[int] = None
    vector_error: Optional[str] = None


class ResetRequest(BaseModel):
    project_path: Optional[str] = None


class ResetOutcomeResponse(BaseModel):
    target: str
    ok: bool
    error: Optional[str] = None


class ResetResponse(BaseModel):
    ok: bool
    outcomes: List[ResetOutcomeResponse]


class HealthCheckResponse(BaseModel):
    name: str
    ok: bool
    detail: str = ""


class HealthResponse(BaseModel):
    ok: bool
    checks: List[HealthCheckResponse]
