"""In-process tracking of indexing runs started over HTTP."""

from __future__ import annotations

import dataclasses
import logging
import threading
import uuid
from pathlib import Path
from typing import Dict, List, Optional

from ..core.errors import IndexingCancelledError
from ..indexing.pipeline import IndexingPipeline, IndexReport
from ..storage.state import state_key

logger = logging.getLogger(__name__)

ACTIVE_STATUSES = ("pending", "indexing")


@dataclasses.dataclass
class IndexJob:
    job_id: str
    project_path: str
    force_full: bool = False
    status: str = "pending"  # pending, indexing, indexed, cancelled, error
    messages: List[str] = dataclasses.field(default_factory=list)
    embedded: int = 0
    embed_total: int = 0
    report: Optional[IndexReport] = None
    error: Optional[str] = None
    cancel: threading.Event = dataclasses.field(default_factory=threading.Event)

    @property
    def finished(self) -> bool:
        return self.status not in ACTIVE_STATUSES


class ProjectBusyError(RuntimeError):
    """Another indexing run for the same project is still active."""


class JobRegistry:
    """Serializes indexing per project; one active job per canonical path."""

    def __init__(self):
        self._lock = threading.Lock()
        self._jobs: Dict[str, IndexJob] = {}

    def start(self, project_path: str, force_full: bool = False) -> IndexJob:
        key = state_key(Path(project_path))
        with self._lock:
            for job in self._jobs.values():
                if job.project_path == key and not job.finished:
                    raise ProjectBusyError(f"{key} is already being indexed (job {job.job_id})")
            job = IndexJob(job_id=uuid.uuid4().hex, project_path=key, force_full=force_full)
            self._jobs[job.job_id] = job
        return job

    def get(self, job_id: str) -> Optional[IndexJob]:
        with self._lock:
            return self._jobs.get(job_id)

    def list(self) -> List[IndexJob]:
        with self._lock:
            return list(self._jobs.values())


def run_index_job(pipeline: IndexingPipeline, job: IndexJob, reraise: bool = True) -> IndexJob:
    """Run one job to completion, recording progress on it.

    Failures end up in ``job.error`` and are logged. With ``reraise`` the
    exception also propagates so a synchronous caller can report it.
    """
    job.status = "indexing"

    def on_embed_progress(done: int, total: int) -> None:
        job.embedded = done
        job.embed_total = total

    try:
        job.report = pipeline.index(
            job.project_path,
            force_full=job.force_full,
            on_status=job.messages.append,
            on_embed_progress=on_embed_progress,
            cancel=job.cancel,
        )
    except IndexingCancelledError:
        job.status = "cancelled"
        job.error = "Indexing cancelled"
        logger.info(f"Index job {job.job_id} cancelled")
        if reraise:
            raise
        return job
    except Exception as e:
        job.status = "error"
        job.error = str(e)
        logger.exception(f"Index job {job.job_id} failed")
        if reraise:
            raise
        return job
    job.status = "indexed"
    return job
