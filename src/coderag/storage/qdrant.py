"""Qdrant vector database backend."""

from __future__ import annotations

import logging
import uuid
from concurrent.futures import ThreadPoolExecutor
from typing import Dict, Iterable, List, Optional

from qdrant_client import QdrantClient
from qdrant_client.models import (
    Distance,
    FieldCondition,
    Filter,
    MatchValue,
    PayloadSchemaType,
    PointStruct,
    VectorParams,
)

from ..core.errors import DimensionMismatchError
from ..core.models import CodeUnit, EmbeddingVector, SearchHit
from .base import VectorStore

logger = logging.getLogger(__name__)

DEFAULT_COLLECTION = "coderag_units"
UPSERT_BATCH_SIZE = 100
MAX_DELETE_PARALLELISM = 8


def point_id_for(unit_id: str) -> str:
    """Qdrant only accepts integers and UUIDs as point ids."""
    return str(uuid.uuid5(uuid.NAMESPACE_URL, unit_id))


def _project_filter(project_id: str, file_path: Optional[str] = None) -> Filter:
    must = [FieldCondition(key="project_id", match=MatchValue(value=project_id))]
    if file_path is not None:
        must.append(FieldCondition(key="file_path", match=MatchValue(value=file_path)))
    return Filter(must=must)


class QdrantVectorStore(VectorStore):

    def __init__(
        self,
        host: str = "localhost",
        port: int = 6333,
        collection_name: str = DEFAULT_COLLECTION,
        url: Optional[str] = None,
        client: Optional[QdrantClient] = None,
    ):
        self.host = host
        self.port = port
        self.collection_name = collection_name
        if client is not None:
            self.client = client
        elif url:
            self.client = QdrantClient(url=url)
        else:
            self.client = QdrantClient(host=host, port=port)
        self._dimensions: Optional[int] = None

    def _get_collection_vector_dim(self) -> Optional[int]:
        if not self.client.collection_exists(collection_name=self.collection_name):
            return None
        collection_info = self.client.get_collection(collection_name=self.collection_name)
        return collection_info.config.params.vectors.size

    def ensure_collection(self, dimensions: int) -> None:
        if dimensions <= 0:
            raise ValueError(f"dimensions must be positive, got {dimensions}")

        existing_dim = self._get_collection_vector_dim()
        if existing_dim is not None:
            if existing_dim != dimensions:
                raise DimensionMismatchError(
                    f"Collection '{self.collection_name}' exists with dimension {existing_dim}, "
                    f"but the embedding model produces {dimensions}. Reset the index and re-index."
                )
            self._dimensions = existing_dim
            return

        logger.info(f"Creating collection '{self.collection_name}' (dim={dimensions})")
        self.client.create_collection(
            collection_name=self.collection_name,
            vectors_config=VectorParams(size=dimensions, distance=Distance.COSINE),
        )
        for field in ("project_id", "file_path"):
            self.client.create_payload_index(
                collection_name=self.collection_name,
                field_name=field,
                field_schema=PayloadSchemaType.KEYWORD,
            )
        self._dimensions = dimensions

    def upsert(self, units: List[CodeUnit], vectors: List[EmbeddingVector]) -> None:
        if not units:
            logger.warning("No units to upsert")
            return

        by_id: Dict[str, List[float]] = {v.unit_id: v.vector for v in vectors}
        expected_dim = self._dimensions or self._get_collection_vector_dim()

        points = []
        for unit in units:
            vector = by_id.get(unit.id)
            if vector is None:
                raise ValueError(f"No embedding for unit {unit.id} ({unit.file_path}:{unit.start_line})")
            if expected_dim is not None and len(vector) != expected_dim:
                raise DimensionMismatchError(
                    f"Unit {unit.id} at {unit.file_path}:{unit.start_line} has dimension "
                    f"{len(vector)}, expected {expected_dim}"
                )
            points.append(
                PointStruct(
                    id=point_id_for(unit.id),
                    vector=vector,
                    payload={
                        "unit_id": unit.id,
                        "project_id": unit.project_id,
                        "file_path": unit.file_path,
                        "namespace": unit.namespace,
                        "type_name": unit.type_name,
                        "member_name": unit.member_name,
                        "signature": unit.signature,
                        "kind": unit.kind.value,
                        "start_line": unit.start_line,
                        "end_line": unit.end_line,
                        "body": unit.body,
                        "embedding_text": unit.embedding_text,
                        "attributes": unit.attributes,
                        "dependencies": unit.dependencies,
                        "base_types": unit.base_types,
                        "part_index": unit.part_index,
                        "total_parts": unit.total_parts,
                    },
                )
            )

        total_batches = (len(points) + UPSERT_BATCH_SIZE - 1) // UPSERT_BATCH_SIZE
        logger.info(f"Uploading {len(points)} points in {total_batches} batches")

        for i in range(0, len(points), UPSERT_BATCH_SIZE):
            batch = points[i:i + UPSERT_BATCH_SIZE]
            batch_num = i // UPSERT_BATCH_SIZE + 1
            try:
                self.client.upsert(collection_name=self.collection_name, points=batch)
                logger.debug(f"Uploaded batch {batch_num}/{total_batches}")
            except Exception as e:
                raise RuntimeError(
                    f"Failed to upsert batch {batch_num}/{total_batches} "
                    f"(points {i}-{i+len(batch)}): {e}"
                ) from e

    def search(
        self,
        query_vector: List[float],
        top_k: int,
        project_id: Optional[str] = None,
    ) -> List[SearchHit]:
        """Search using Qdrant's vector search."""
        if not self.client.collection_exists(collection_name=self.collection_name):
            return []

        search_filter = _project_filter(project_id) if project_id else None
        try:
            results = self.client.query_points(
                collection_name=self.collection_name,
                query=query_vector,
                limit=top_k,
                query_filter=search_filter,
                with_payload=True,
                with_vectors=False,
            )
        except Exception as e:
            logger.error(f"Error searching in collection '{self.collection_name}': {e}")
            raise

        hits = []
        for result in results.points:
            payload = result.payload or {}
            hits.append(
                SearchHit(
                    unit_id=payload["unit_id"],
                    score=float(result.score),
                    project_id=payload.get("project_id", ""),
                    file_path=payload.get("file_path", ""),
                    type_name=payload.get("type_name", ""),
                    member_name=payload.get("member_name", ""),
                    start_line=int(payload.get("start_line", 0)),
                    end_line=int(payload.get("end_line", 0)),
                    body=payload.get("body"),
                    embedding_text=payload.get("embedding_text"),
                )
            )
        return hits

    def delete_by_files(self, project_id: str, file_paths: Iterable[str]) -> None:
        paths = sorted(set(file_paths))
        if not paths or not self.client.collection_exists(collection_name=self.collection_name):
            return

        def _delete(path: str) -> None:
            self.client.delete(
                collection_name=self.collection_name,
                points_selector=_project_filter(project_id, path),
            )

        workers = min(MAX_DELETE_PARALLELISM, len(paths))
        with ThreadPoolExecutor(max_workers=workers) as pool:
            # list() re-raises the first failing delete
            list(pool.map(_delete, paths))
        logger.info(f"Deleted points for {len(paths)} files in project {project_id}")

    def delete_by_project(self, project_id: str) -> None:
        if not self.client.collection_exists(collection_name=self.collection_name):
            return
        self.client.delete(
            collection_name=self.collection_name,
            points_selector=_project_filter(project_id),
        )
        logger.info(f"Deleted points for project: {project_id}")

    def delete_collection(self) -> None:
        if self.client.collection_exists(collection_name=self.collection_name):
            self.client.delete_collection(collection_name=self.collection_name)
            logger.info(f"Deleted collection '{self.collection_name}'")
        self._dimensions = None

    def count_points(self, project_id: Optional[str] = None) -> int:
        if not self.client.collection_exists(collection_name=self.collection_name):
            return 0
        result = self.client.count(
            collection_name=self.collection_name,
            count_filter=_project_filter(project_id) if project_id else None,
            exact=True,
        )
        return result.count


def make_vector_store(cfg: Dict) -> VectorStore:
    qdrant_cfg = cfg.get("vector_store", {}).get("qdrant", {})
    return QdrantVectorStore(
        host=qdrant_cfg.get("host", "localhost"),
        port=int(qdrant_cfg.get("port", 6333)),
        collection_name=qdrant_cfg.get("collection") or DEFAULT_COLLECTION,
        url=qdrant_cfg.get("url"),
    )
