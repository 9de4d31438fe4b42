import pytest
from qdrant_client import QdrantClient

from coderag.core.errors import DimensionMismatchError
from coderag.core.models import EmbeddingVector
from coderag.storage.qdrant import QdrantVectorStore, point_id_for

from fakes import make_unit


@pytest.fixture
def store():
    return QdrantVectorStore(collection_name="test_units", client=QdrantClient(":memory:"))


def _vec(*values):
    return list(values) + [0.0] * (4 - len(values))


@pytest.fixture
def loaded(store):
    units = [
        make_unit("A.cs", 1, "A", "Run", project_id="shop"),
        make_unit("A.cs", 9, "A", "Stop", project_id="shop"),
        make_unit("B.cs", 1, "B", "Run", project_id="shop"),
        make_unit("A.cs", 1, "A", "Run", project_id="billing"),
    ]
    vectors = [
        EmbeddingVector(units[0].id, _vec(1.0)),
        EmbeddingVector(units[1].id, _vec(0.0, 1.0)),
        EmbeddingVector(units[2].id, _vec(0.0, 0.0, 1.0)),
        EmbeddingVector(units[3].id, _vec(1.0, 0.1)),
    ]
    store.ensure_collection(4)
    store.upsert(units, vectors)
    return units


class TestQdrantVectorStore:

    def test_point_ids_are_stable_uuids(self):
        assert point_id_for("abc") == point_id_for("abc")
        assert point_id_for("abc") != point_id_for("abd")
        assert len(point_id_for("abc")) == 36

    def test_missing_collection_is_empty(self, store):
        assert store.count_points() == 0
        assert store.search(_vec(1.0), top_k=5) == []
        store.delete_by_project("shop")
        store.delete_by_files("shop", ["A.cs"])

    def test_ensure_collection_is_idempotent(self, store):
        store.ensure_collection(4)
        store.ensure_collection(4)
        assert store.count_points() == 0

    def test_dimension_mismatch(self, store):
        store.ensure_collection(4)
        with pytest.raises(DimensionMismatchError):
            store.ensure_collection(8)

    def test_upsert_rejects_wrong_dimension(self, store):
        store.ensure_collection(4)
        unit = make_unit()
        with pytest.raises(DimensionMismatchError):
            store.upsert([unit], [EmbeddingVector(unit.id, [1.0, 0.0])])

    def test_upsert_requires_a_vector_per_unit(self, store):
        store.ensure_collection(4)
        with pytest.raises(ValueError):
            store.upsert([make_unit()], [])

    def test_upsert_is_idempotent(self, store, loaded):
        store.upsert(loaded[:1], [EmbeddingVector(loaded[0].id, _vec(1.0))])
        assert store.count_points() == 4

    def test_search_returns_payload(self, store, loaded):
        hits = store.search(_vec(1.0), top_k=1, project_id="shop")
        assert len(hits) == 1
        hit = hits[0]
        assert hit.unit_id == loaded[0].id
        assert hit.file_path == "A.cs"
        assert hit.member_name == "Run"
        assert hit.body == loaded[0].body
        assert hit.score == pytest.approx(1.0)

    def test_search_filters_by_project(self, store, loaded):
        hits = store.search(_vec(1.0), top_k=10, project_id="billing")
        assert [h.unit_id for h in hits] == [loaded[3].id]
        assert len(store.search(_vec(1.0), top_k=10)) == 4

    def test_count_by_project(self, store, loaded):
        assert store.count_points("shop") == 3
        assert store.count_points("billing") == 1

    def test_delete_by_files_is_project_scoped(self, store, loaded):
        store.delete_by_files("shop", ["A.cs"])
        assert store.count_points("shop") == 1
        assert store.count_points("billing") == 1

    def test_delete_by_project(self, store, loaded):
        store.delete_by_project("shop")
        assert store.count_points() == 1

    def test_delete_collection(self, store, loaded):
        store.delete_collection()
        assert store.count_points() == 0
        store.ensure_collection(8)
