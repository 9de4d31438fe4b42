"""On-disk BM25 keyword index built with bm25s.

bm25s indexes are immutable, so the store keeps the source documents in
``documents.json`` and rebuilds the index after every write. Both files live
under one directory; the index is reloaded on ``open()`` and rebuilt from the
documents if it is missing or out of sync.
"""

from __future__ import annotations

import json
import logging
import os
import re
import shutil
import tempfile
import threading
from pathlib import Path
from typing import Dict, Iterable, List, Optional

import bm25s

from ..core.models import CodeUnit, SearchHit
from .base import KeywordStore

logger = logging.getLogger(__name__)

DOCUMENTS_FILE = "documents.json"
CORPUS_IDS_FILE = "corpus_ids.json"
INDEX_DIR = "index"

_CAMEL_RE = re.compile(r"[A-Z]+(?=[A-Z][a-z])|[A-Z]?[a-z]+|[A-Z]+|\d+")
_IDENT_RE = re.compile(r"[A-Za-z_][A-Za-z0-9_]*")


def expand_identifiers(text: str) -> str:
    """Append the camelCase/snake_case pieces of every identifier in ``text``.

    ``GetUserById`` stays searchable as a whole and also as ``get user by id``.
    """
    extra: List[str] = []
    for ident in _IDENT_RE.findall(text):
        pieces = [p for part in ident.split("_") for p in _CAMEL_RE.findall(part)]
        if len(pieces) > 1:
            extra.extend(pieces)
    if not extra:
        return text
    return text + "\n" + " ".join(extra)


def _document_text(doc: Dict) -> str:
    return expand_identifiers(
        "\n".join([doc.get("embedding_text", ""), doc.get("type_name", ""), doc.get("member_name", "")])
    )


def _tokenize(texts: List[str]) -> List[List[str]]:
    return bm25s.tokenize(texts, stopwords="en", return_ids=False, show_progress=False)


class BM25KeywordStore(KeywordStore):

    def __init__(self, index_dir: Path):
        self.index_dir = Path(index_dir)
        self._lock = threading.Lock()
        self._documents: Dict[str, Dict] = {}
        self._corpus_ids: List[str] = []
        self._retriever: Optional[bm25s.BM25] = None
        self._opened = False

    def open(self) -> None:
        with self._lock:
            if self._opened:
                return
            self._load()
            self._opened = True

    def _load(self) -> None:
        docs_path = self.index_dir / DOCUMENTS_FILE
        self._documents = {}
        if docs_path.exists():
            try:
                with docs_path.open("r", encoding="utf-8") as f:
                    documents = json.load(f)
            except (json.JSONDecodeError, UnicodeDecodeError) as e:
                logger.warning(f"Ignoring corrupt keyword documents at {docs_path}: {e}")
            else:
                if isinstance(documents, dict):
                    self._documents = documents
                else:
                    logger.warning(f"Ignoring keyword documents at {docs_path}: expected an object")

        ids_path = self.index_dir / CORPUS_IDS_FILE
        idx_path = self.index_dir / INDEX_DIR
        if self._documents and idx_path.exists() and ids_path.exists():
            try:
                retriever = bm25s.BM25.load(idx_path, load_corpus=False)
                with ids_path.open("r", encoding="utf-8") as f:
                    corpus_ids = json.load(f)
            except (OSError, ValueError) as e:
                logger.warning(f"Could not load BM25 index from {idx_path}, rebuilding: {e}")
            else:
                if set(corpus_ids) == set(self._documents):
                    self._retriever = retriever
                    self._corpus_ids = corpus_ids
                    logger.info(f"Loaded BM25 index with {len(corpus_ids)} documents")
                    return
                logger.warning("BM25 index is out of sync with documents, rebuilding")

        self._rebuild()
        if self._documents:
            self._save()

    def _rebuild(self) -> None:
        self._corpus_ids = list(self._documents)
        if not self._corpus_ids:
            self._retriever = None
            return
        corpus = [_document_text(self._documents[i]) for i in self._corpus_ids]
        retriever = bm25s.BM25()
        retriever.index(_tokenize(corpus), show_progress=False)
        self._retriever = retriever

    def _save(self) -> None:
        self.index_dir.mkdir(parents=True, exist_ok=True)

        fd, tmp = tempfile.mkstemp(dir=self.index_dir, prefix=".documents-", suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(self._documents, f, ensure_ascii=False)
            os.replace(tmp, self.index_dir / DOCUMENTS_FILE)
        except BaseException:
            Path(tmp).unlink(missing_ok=True)
            raise

        idx_path = self.index_dir / INDEX_DIR
        if self._retriever is None:
            shutil.rmtree(idx_path, ignore_errors=True)
            (self.index_dir / CORPUS_IDS_FILE).unlink(missing_ok=True)
            return
        self._retriever.save(idx_path)
        with (self.index_dir / CORPUS_IDS_FILE).open("w", encoding="utf-8") as f:
            json.dump(self._corpus_ids, f)

    def _commit(self) -> None:
        self._rebuild()
        self._save()

    def _ensure_open(self) -> None:
        if not self._opened:
            self._load()
            self._opened = True

    def index(self, units: List[CodeUnit]) -> None:
        if not units:
            return
        with self._lock:
            self._ensure_open()
            for unit in units:
                self._documents[unit.id] = {
                    "project_id": unit.project_id,
                    "file_path": unit.file_path,
                    "type_name": unit.type_name,
                    "member_name": unit.member_name,
                    "start_line": unit.start_line,
                    "end_line": unit.end_line,
                    "body": unit.body,
                    "embedding_text": unit.embedding_text,
                }
            self._commit()
        logger.info(f"Indexed {len(units)} units into BM25 store ({len(self._corpus_ids)} total)")

    def search(self, text: str, top_k: int, project_id: Optional[str] = None) -> List[SearchHit]:
        if top_k <= 0:
            raise ValueError(f"top_k must be positive, got {top_k}")

        with self._lock:
            self._ensure_open()
            if self._retriever is None or not self._corpus_ids:
                return []
            query_tokens = _tokenize([expand_identifiers(text)])
            if not query_tokens or not query_tokens[0]:
                return []

            # filtering happens after retrieval, so scan the whole corpus then
            fetch_k = len(self._corpus_ids) if project_id else min(top_k, len(self._corpus_ids))
            results, scores = self._retriever.retrieve(query_tokens, k=fetch_k, show_progress=False)

            hits: List[SearchHit] = []
            for i in range(results.shape[1]):
                idx = int(results[0, i])
                score = float(scores[0, i])
                if idx < 0 or idx >= len(self._corpus_ids) or score <= 0:
                    continue
                unit_id = self._corpus_ids[idx]
                doc = self._documents[unit_id]
                if project_id and doc["project_id"] != project_id:
                    continue
                hits.append(
                    SearchHit(
                        unit_id=unit_id,
                        score=score,
                        project_id=doc["project_id"],
                        file_path=doc["file_path"],
                        type_name=doc["type_name"],
                        member_name=doc["member_name"],
                        start_line=doc["start_line"],
                        end_line=doc["end_line"],
                        body=doc.get("body"),
                        embedding_text=doc.get("embedding_text"),
                    )
                )
                if len(hits) >= top_k:
                    break
            return hits

    def delete_by_files(self, project_id: str, file_paths: Iterable[str]) -> None:
        paths = set(file_paths)
        if not paths:
            return
        with self._lock:
            self._ensure_open()
            doomed = [
                uid
                for uid, doc in self._documents.items()
                if doc["project_id"] == project_id and doc["file_path"] in paths
            ]
            if not doomed:
                return
            for uid in doomed:
                del self._documents[uid]
            self._commit()
        logger.info(f"Deleted {len(doomed)} BM25 documents for {len(paths)} files in project {project_id}")

    def delete_by_project(self, project_id: str) -> None:
        with self._lock:
            self._ensure_open()
            doomed = [uid for uid, doc in self._documents.items() if doc["project_id"] == project_id]
            if not doomed:
                return
            for uid in doomed:
                del self._documents[uid]
            self._commit()
        logger.info(f"Deleted {len(doomed)} BM25 documents for project {project_id}")

    def delete_all(self) -> None:
        with self._lock:
            self._documents = {}
            self._corpus_ids = []
            self._retriever = None
            self._opened = True
            if self.index_dir.exists():
                shutil.rmtree(self.index_dir)
        logger.info(f"Deleted BM25 index at {self.index_dir}")

    def count(self, project_id: Optional[str] = None) -> int:
        with self._lock:
            self._ensure_open()
            if project_id is None:
                return len(self._documents)
            return sum(1 for doc in self._documents.values() if doc["project_id"] == project_id)


def make_keyword_store(cfg: Dict) -> KeywordStore:
    data_dir = Path(cfg.get("indexing", {}).get("data_dir", ".coderag"))
    return BM25KeywordStore(data_dir / "bm25")
