"""Full and incremental indexing across the vector, keyword and state stores."""

from __future__ import annotations

import dataclasses
import logging
import threading
import time
from datetime import datetime, timezone
from pathlib import Path
from typing import Callable, Dict, List, Optional, Set, Union

from ..core.embeddings import Embedder, ProgressCallback, make_embedder
from ..core.errors import IndexingCancelledError, NotUnderVersionControlError, ProjectNotFoundError
from ..core.models import CodeUnit
from ..core.splitting import UnitSplitter
from ..storage.base import KeywordStore, VectorStore
from ..storage.bm25 import make_keyword_store
from ..storage.qdrant import make_vector_store
from ..storage.state import JsonIndexStateStore, ProjectIndexState, make_state_store
from ..utils.file_utils import file_sha256, project_id_for, source_root
from .base import Indexer
from .extractor import Extractor, make_extractor
from .git_diff import GitChangeDetector

logger = logging.getLogger(__name__)

StatusCallback = Callable[[str], None]


@dataclasses.dataclass
class IndexReport:
    mode: str  # "full", "incremental", "up_to_date" or "empty"
    revision: Optional[str]
    units_indexed: int = 0
    files_indexed: int = 0
    files_deleted: int = 0
    elapsed: float = 0.0


def dedup_units(units: List[CodeUnit]) -> List[CodeUnit]:
    """Drop repeated ids, keeping the first occurrence."""
    seen: Set[str] = set()
    out: List[CodeUnit] = []
    for unit in units:
        if unit.id in seen:
            logger.debug(f"Dropping duplicate unit {unit.id} ({unit.file_path}:{unit.start_line})")
            continue
        seen.add(unit.id)
        out.append(unit)
    return out


def _hash_files(root: Path, rel_paths: Set[str]) -> Dict[str, str]:
    return {rel: file_sha256(root / rel) for rel in sorted(rel_paths)}


class IndexingPipeline(Indexer):
    """Keeps the three stores consistent for one project at a time.

    Incremental runs diff the last indexed revision against HEAD and only
    touch changed files; anything else (first run, forced run, no git)
    rebuilds the project's entries from scratch. The state file is written
    last, so an interrupted run is redone on the next attempt.
    """

    def __init__(
        self,
        extractor: Extractor,
        embedder: Embedder,
        vector_store: VectorStore,
        keyword_store: KeywordStore,
        state_store: JsonIndexStateStore,
        change_detector: Optional[GitChangeDetector] = None,
        splitter: Optional[UnitSplitter] = None,
    ):
        self.extractor = extractor
        self.embedder = embedder
        self.vector_store = vector_store
        self.keyword_store = keyword_store
        self.state_store = state_store
        self.change_detector = change_detector or GitChangeDetector()
        self.splitter = splitter or UnitSplitter()

    def index(
        self,
        project_path: Union[str, Path],
        force_full: bool = False,
        on_status: Optional[StatusCallback] = None,
        on_embed_progress: Optional[ProgressCallback] = None,
        cancel: Optional[threading.Event] = None,
    ) -> IndexReport:
        started = time.monotonic()
        project_path = Path(project_path)
        if not project_path.exists():
            raise ProjectNotFoundError(f"Project path does not exist: {project_path}")

        project_path = project_path.resolve()
        root = source_root(project_path)

        def status(message: str) -> None:
            logger.info(message)
            if on_status is not None:
                on_status(message)

        prior = self.state_store.load(project_path)
        project_id = prior.project_id if prior else project_id_for(project_path)

        revision: Optional[str] = None
        try:
            revision = self.change_detector.current_revision(root)
        except NotUnderVersionControlError as e:
            status(f"Warning: not a git repository or git not available ({e}). Performing full index.")

        incremental = (
            not force_full
            and prior is not None
            and prior.last_indexed_revision is not None
            and revision is not None
        )

        if prior is not None and prior.embedding_model and prior.embedding_model != self.embedder.model_name:
            logger.warning(
                f"Index was built with {prior.embedding_model}, now embedding with {self.embedder.model_name}; "
                f"consider a full re-index"
            )

        if incremental:
            report = self._index_incremental(
                project_path, root, project_id, prior, revision, status, on_embed_progress, cancel
            )
        else:
            report = self._index_full(
                project_path, root, project_id, prior, revision, status, on_embed_progress, cancel
            )
        report.elapsed = time.monotonic() - started
        return report

    def _prepare_units(self, units: List[CodeUnit]) -> List[CodeUnit]:
        return dedup_units(self.splitter.split_units(units))

    def _index_full(
        self,
        project_path: Path,
        root: Path,
        project_id: str,
        prior: Optional[ProjectIndexState],
        revision: Optional[str],
        status: StatusCallback,
        on_embed_progress: Optional[ProgressCallback],
        cancel: Optional[threading.Event],
    ) -> IndexReport:
        status(f"Starting full index of {project_path}")

        self.vector_store.ensure_collection(self.embedder.dimensions)
        self.keyword_store.open()
        _check_cancel(cancel)

        units = self._prepare_units(self.extractor.extract_project(root, project_id=project_id))
        if not units:
            status("No code units found. Index is empty.")
            return IndexReport(mode="empty", revision=revision)

        files = {u.file_path for u in units}
        status(f"Extracted {len(units)} units from {len(files)} files")
        _check_cancel(cancel)

        status("Generating embeddings...")
        vectors = self.embedder.embed_batch(units, progress=on_embed_progress, cancel=cancel)
        _check_cancel(cancel)

        # drop the stale state first so a failure below forces a full rebuild next time
        if prior is not None:
            self.state_store.delete(project_path)
        self.vector_store.delete_by_project(project_id)
        self.keyword_store.delete_by_project(project_id)

        status("Storing vectors...")
        self.vector_store.upsert(units, vectors)
        status("Building keyword index...")
        self.keyword_store.index(units)

        self.state_store.save(
            ProjectIndexState(
                project_path=str(project_path),
                project_id=project_id,
                last_indexed_revision=revision,
                indexed_at=datetime.now(timezone.utc),
                total_units=len(units),
                total_files=len(files),
                embedding_model=self.embedder.model_name,
                embedding_dimensions=self.embedder.dimensions,
                file_hashes=_hash_files(root, files),
            )
        )
        status(f"Full index complete: {len(units)} units from {len(files)} files.")
        return IndexReport(
            mode="full",
            revision=revision,
            units_indexed=len(units),
            files_indexed=len(files),
        )

    def _index_incremental(
        self,
        project_path: Path,
        root: Path,
        project_id: str,
        prior: ProjectIndexState,
        revision: str,
        status: StatusCallback,
        on_embed_progress: Optional[ProgressCallback],
        cancel: Optional[threading.Event],
    ) -> IndexReport:
        from_rev = prior.last_indexed_revision or ""
        status(f"Incremental index: {from_rev[:8]} -> {revision[:8]}")

        try:
            changes = self.change_detector.changed_files(root, from_rev, revision)
        except NotUnderVersionControlError as e:
            status(f"Warning: last indexed revision {from_rev[:8]} is unreachable ({e}). Performing full index.")
            return self._index_full(
                project_path, root, project_id, prior, revision, status, on_embed_progress, cancel
            )
        if changes.is_empty:
            status("No source files changed. Index is up to date.")
            return IndexReport(mode="up_to_date", revision=revision)

        status(
            f"Changed files: {len(changes.added)} added, {len(changes.modified)} modified, "
            f"{len(changes.deleted)} deleted"
        )
        self.vector_store.ensure_collection(self.embedder.dimensions)
        self.keyword_store.open()
        _check_cancel(cancel)

        to_remove = changes.to_remove
        if to_remove:
            status(f"Removing stale units for {len(to_remove)} files...")
            self.vector_store.delete_by_files(project_id, to_remove)
            self.keyword_store.delete_by_files(project_id, to_remove)
        _check_cancel(cancel)

        units: List[CodeUnit] = []
        to_reindex = changes.to_reindex
        if to_reindex:
            status(f"Parsing {len(to_reindex)} changed files...")
            units = self._prepare_units(
                self.extractor.extract_files(root, sorted(to_reindex), project_id=project_id)
            )
            _check_cancel(cancel)

        reindexed_files = {u.file_path for u in units}
        if units:
            status(f"Generating embeddings for {len(units)} units...")
            vectors = self.embedder.embed_batch(units, progress=on_embed_progress, cancel=cancel)
            _check_cancel(cancel)
            status("Updating stores...")
            self.vector_store.upsert(units, vectors)
            self.keyword_store.index(units)

        file_hashes = {k: v for k, v in prior.file_hashes.items() if k not in to_remove}
        file_hashes.update(_hash_files(root, reindexed_files))
        total_units = self.vector_store.count_points(project_id)

        self.state_store.save(
            prior.model_copy(
                update={
                    "last_indexed_revision": revision,
                    "indexed_at": datetime.now(timezone.utc),
                    "total_units": total_units,
                    "total_files": len(file_hashes),
                    "embedding_model": self.embedder.model_name,
                    "embedding_dimensions": self.embedder.dimensions,
                    "file_hashes": file_hashes,
                }
            )
        )
        status(f"Incremental index complete. Total units: {total_units}")
        return IndexReport(
            mode="incremental",
            revision=revision,
            units_indexed=len(units),
            files_indexed=len(reindexed_files),
            files_deleted=len(changes.deleted),
        )


def _check_cancel(cancel: Optional[threading.Event]) -> None:
    if cancel is not None and cancel.is_set():
        raise IndexingCancelledError("Indexing cancelled")


def build_indexing_pipeline(cfg: Dict) -> IndexingPipeline:
    include = cfg.get("indexing", {}).get("include_patterns") or ["*.cs"]
    return IndexingPipeline(
        extractor=make_extractor(cfg),
        embedder=make_embedder(cfg),
        vector_store=make_vector_store(cfg),
        keyword_store=make_keyword_store(cfg),
        state_store=make_state_store(cfg),
        change_detector=GitChangeDetector(pathspec=include[0]),
        splitter=UnitSplitter(max_chars=int(cfg.get("indexing", {}).get("max_unit_chars", 4000))),
    )
