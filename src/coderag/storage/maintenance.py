"""Reset and status operations spanning all three stores."""

from __future__ import annotations

import dataclasses
import logging
from pathlib import Path
from typing import Callable, List, Optional, Union

from ..utils.file_utils import project_id_for
from .base import KeywordStore, VectorStore
from .state import JsonIndexStateStore, ProjectIndexState

logger = logging.getLogger(__name__)


@dataclasses.dataclass
class ResetOutcome:
    target: str
    ok: bool
    error: Optional[str] = None


@dataclasses.dataclass
class ResetReport:
    outcomes: List[ResetOutcome] = dataclasses.field(default_factory=list)

    @property
    def ok(self) -> bool:
        return all(o.ok for o in self.outcomes)

    @property
    def failed(self) -> List[ResetOutcome]:
        return [o for o in self.outcomes if not o.ok]


def _attempt(report: ResetReport, target: str, action: Callable[[], object]) -> None:
    try:
        action()
    except Exception as e:
        logger.error(f"Reset of {target} failed: {e}")
        report.outcomes.append(ResetOutcome(target=target, ok=False, error=str(e)))
    else:
        report.outcomes.append(ResetOutcome(target=target, ok=True))


def reset_index(
    vector_store: VectorStore,
    keyword_store: KeywordStore,
    state_store: JsonIndexStateStore,
    project_path: Optional[Union[str, Path]] = None,
) -> ResetReport:
    """Delete index data from every store.

    With ``project_path`` only that project's points, documents and state
    entry are removed; otherwise the collection, the keyword index and the
    state file are dropped entirely. Each store is attempted even when an
    earlier one fails; check ``report.ok``.
    """
    report = ResetReport()

    if project_path is None:
        _attempt(report, "vector_store", vector_store.delete_collection)
        _attempt(report, "keyword_store", keyword_store.delete_all)
        _attempt(report, "state", state_store.delete_all)
    else:
        existing = state_store.load(project_path)
        project_id = existing.project_id if existing else project_id_for(Path(project_path))
        _attempt(report, "vector_store", lambda: vector_store.delete_by_project(project_id))

        def _clear_keywords() -> None:
            keyword_store.open()
            keyword_store.delete_by_project(project_id)

        _attempt(report, "keyword_store", _clear_keywords)
        _attempt(report, "state", lambda: state_store.delete(project_path))

    if report.ok:
        logger.info("Reset complete")
    else:
        logger.warning(f"Reset completed with errors: {[o.target for o in report.failed]}")
    return report


@dataclasses.dataclass
class IndexStatus:
    projects: List[ProjectIndexState]
    vector_points: Optional[int]
    vector_error: Optional[str] = None


def collect_status(state_store: JsonIndexStateStore, vector_store: VectorStore) -> IndexStatus:
    """Indexed projects plus vector store health.

    A vector store failure is reported in ``vector_error`` rather than raised
    so status stays available while Qdrant is down.
    """
    state = state_store.load_all()
    projects = [state.projects[k] for k in sorted(state.projects)]
    try:
        points = vector_store.count_points()
    except Exception as e:
        logger.warning(f"Vector store unavailable: {e}")
        return IndexStatus(projects=projects, vector_points=None, vector_error=str(e))
    return IndexStatus(projects=projects, vector_points=points)
