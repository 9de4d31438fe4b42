"""Persisted per-project indexing state.

The whole state is one JSON document. Writes go to a temp file in the same
directory followed by ``os.replace`` so a crash never leaves a torn file. A
file that fails to parse or validate is logged and treated as absent; the next
index run then falls back to a full rebuild.
"""

from __future__ import annotations

import json
import logging
import os
import tempfile
import threading
from datetime import datetime, timezone
from pathlib import Path
from typing import Dict, Optional, Union

from pydantic import BaseModel, Field, ValidationError

logger = logging.getLogger(__name__)

STATE_FILE = "index-state.json"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ProjectIndexState(BaseModel):
    project_path: str
    project_id: str
    last_indexed_revision: Optional[str] = None
    indexed_at: datetime = Field(default_factory=_utcnow)
    total_units: int = 0
    total_files: int = 0
    embedding_model: str = ""
    embedding_dimensions: int = 0
    file_hashes: Dict[str, str] = Field(default_factory=dict)


class IndexState(BaseModel):
    projects: Dict[str, ProjectIndexState] = Field(default_factory=dict)


def state_key(project_path: Union[str, Path]) -> str:
    """Canonical key for a project: its resolved absolute path."""
    return str(Path(project_path).resolve())


class JsonIndexStateStore:
    """Reads and writes ``<data_dir>/index-state.json``.

    ``lock`` guards every read-modify-write. Pass a shared lock when several
    stores point at the same file in one process.
    """

    def __init__(self, data_dir: Union[str, Path], lock: Optional[threading.Lock] = None):
        self.data_dir = Path(data_dir)
        self.path = self.data_dir / STATE_FILE
        self._lock = lock if lock is not None else threading.Lock()

    def _read(self) -> IndexState:
        if not self.path.exists():
            return IndexState()
        try:
            with self.path.open("r", encoding="utf-8") as f:
                return IndexState.model_validate(json.load(f))
        except (json.JSONDecodeError, ValidationError, UnicodeDecodeError) as e:
            logger.warning(f"Ignoring corrupt index state at {self.path}: {e}")
            return IndexState()

    def _write(self, state: IndexState) -> None:
        self.data_dir.mkdir(parents=True, exist_ok=True)
        fd, tmp = tempfile.mkstemp(dir=self.data_dir, prefix=".index-state-", suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(state.model_dump_json(indent=2))
            os.replace(tmp, self.path)
        except BaseException:
            Path(tmp).unlink(missing_ok=True)
            raise

    def load_all(self) -> IndexState:
        with self._lock:
            return self._read()

    def load(self, project_path: Union[str, Path]) -> Optional[ProjectIndexState]:
        with self._lock:
            return self._read().projects.get(state_key(project_path))

    def save(self, project_state: ProjectIndexState) -> None:
        key = state_key(project_state.project_path)
        with self._lock:
            state = self._read()
            state.projects[key] = project_state
            self._write(state)
        logger.debug(f"Saved index state for {key}")

    def delete(self, project_path: Union[str, Path]) -> bool:
        """Remove one project's entry. Returns False if it was not present."""
        key = state_key(project_path)
        with self._lock:
            state = self._read()
            if key not in state.projects:
                return False
            del state.projects[key]
            self._write(state)
        logger.info(f"Deleted index state for {key}")
        return True

    def delete_all(self) -> None:
        with self._lock:
            if self.path.exists():
                self.path.unlink()
        logger.info(f"Deleted index state file {self.path}")


def make_state_store(cfg: Dict, lock: Optional[threading.Lock] = None) -> JsonIndexStateStore:
    return JsonIndexStateStore(cfg.get("indexing", {}).get("data_dir", ".coderag"), lock=lock)
