"""Indexing routes with SSE progress."""

import asyncio
import json
import logging
from pathlib import Path

from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException
from sse_starlette.sse import EventSourceResponse

from ...core.errors import IndexingCancelledError, ProjectNotFoundError
from ...indexing.pipeline import IndexingPipeline, IndexReport
from ..deps import get_indexing_pipeline, get_job_registry
from ..jobs import IndexJob, JobRegistry, ProjectBusyError, run_index_job
from ..schemas import IndexJobResponse, IndexReportResponse, IndexRequest

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/index", tags=["indexing"])


def _report_response(report: IndexReport) -> IndexReportResponse:
    return IndexReportResponse(
        mode=report.mode,
        revision=report.revision,
        units_indexed=report.units_indexed,
        files_indexed=report.files_indexed,
        files_deleted=report.files_deleted,
        elapsed=report.elapsed,
    )


def _job_response(job: IndexJob) -> IndexJobResponse:
    return IndexJobResponse(
        job_id=job.job_id,
        project_path=job.project_path,
        status=job.status,
        messages=list(job.messages),
        embedded=job.embedded,
        embed_total=job.embed_total,
        report=_report_response(job.report) if job.report else None,
        error=job.error,
    )


def _get_job(registry: JobRegistry, job_id: str) -> IndexJob:
    job = registry.get(job_id)
    if job is None:
        raise HTTPException(status_code=404, detail="Index job not found")
    return job


@router.post("", response_model=IndexJobResponse)
def start_indexing(
    request: IndexRequest,
    background_tasks: BackgroundTasks,
    pipeline: IndexingPipeline = Depends(get_indexing_pipeline),
    registry: JobRegistry = Depends(get_job_registry),
):
    """Index a project, inline or as a background job."""
    if not Path(request.project_path).exists():
        raise HTTPException(status_code=404, detail=f"Project path does not exist: {request.project_path}")

    try:
        job = registry.start(request.project_path, force_full=request.force_full)
    except ProjectBusyError as e:
        raise HTTPException(status_code=400, detail=str(e))

    if not request.wait:
        logger.info(f"Starting background index job {job.job_id} for {job.project_path}")
        background_tasks.add_task(run_index_job, pipeline, job, False)
        return _job_response(job)

    try:
        run_index_job(pipeline, job)
    except ProjectNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except IndexingCancelledError as e:
        raise HTTPException(status_code=409, detail=str(e))
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return _job_response(job)


@router.get("/jobs", response_model=list[IndexJobResponse])
def list_jobs(registry: JobRegistry = Depends(get_job_registry)):
    return [_job_response(job) for job in registry.list()]


@router.get("/jobs/{job_id}", response_model=IndexJobResponse)
def get_job(job_id: str, registry: JobRegistry = Depends(get_job_registry)):
    return _job_response(_get_job(registry, job_id))


@router.post("/jobs/{job_id}/cancel", response_model=IndexJobResponse)
def cancel_job(job_id: str, registry: JobRegistry = Depends(get_job_registry)):
    """Request cancellation; the run stops at its next stage boundary."""
    job = _get_job(registry, job_id)
    if job.finished:
        raise HTTPException(status_code=400, detail=f"Job already {job.status}")
    job.cancel.set()
    return _job_response(job)


@router.get("/jobs/{job_id}/progress")
async def job_progress(job_id: str, registry: JobRegistry = Depends(get_job_registry)):
    """SSE endpoint for real-time indexing progress."""
    job = _get_job(registry, job_id)

    async def event_generator():
        while True:
            yield {
                "event": "progress",
                "data": json.dumps(_job_response(job).model_dump()),
            }
            if job.finished:
                break
            await asyncio.sleep(1)

    return EventSourceResponse(event_generator())
