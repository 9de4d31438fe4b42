import shutil

from coderag.storage.maintenance import collect_status, reset_index
from coderag.storage.state import STATE_FILE


class BrokenVectorStore:
    """Fails every call, like an unreachable Qdrant server."""

    def __getattr__(self, name):
        def fail(*args, **kwargs):
            raise ConnectionError("qdrant unreachable")

        return fail


class TestResetIndex:

    def test_full_reset_clears_every_store(self, indexing_pipeline, project_dir, vector_store, keyword_store, state_store):
        indexing_pipeline.index(project_dir)

        report = reset_index(vector_store, keyword_store, state_store)

        assert report.ok
        assert [o.target for o in report.outcomes] == ["vector_store", "keyword_store", "state"]
        assert vector_store.count_points() == 0
        assert keyword_store.documents == {}
        assert not (state_store.data_dir / STATE_FILE).exists()

    def test_failure_in_one_store_does_not_stop_the_rest(
        self, indexing_pipeline, project_dir, keyword_store, state_store
    ):
        indexing_pipeline.index(project_dir)

        report = reset_index(BrokenVectorStore(), keyword_store, state_store)

        assert not report.ok
        assert [o.target for o in report.failed] == ["vector_store"]
        assert "qdrant unreachable" in report.failed[0].error
        assert keyword_store.documents == {}
        assert state_store.load(project_dir) is None

    def test_project_reset_keeps_other_projects(
        self, indexing_pipeline, project_dir, tmp_path, vector_store, keyword_store, state_store
    ):
        other = tmp_path / "billing"
        shutil.copytree(project_dir, other)
        indexing_pipeline.index(project_dir)
        indexing_pipeline.index(other)

        report = reset_index(vector_store, keyword_store, state_store, project_path=project_dir)

        assert report.ok
        assert state_store.load(project_dir) is None
        remaining = state_store.load(other)
        assert remaining is not None
        assert vector_store.count_points() == 3
        assert {u.project_id for u in keyword_store.documents.values()} == {remaining.project_id}

    def test_reset_of_unknown_project_is_harmless(self, vector_store, keyword_store, state_store, tmp_path):
        report = reset_index(vector_store, keyword_store, state_store, project_path=tmp_path / "never")
        assert report.ok


class TestCollectStatus:

    def test_lists_projects_and_points(self, indexing_pipeline, project_dir, vector_store, state_store):
        indexing_pipeline.index(project_dir)
        status = collect_status(state_store, vector_store)
        assert [p.project_path for p in status.projects] == [str(project_dir.resolve())]
        assert status.vector_points == 3
        assert status.vector_error is None

    def test_vector_store_failure_is_reported(self, indexing_pipeline, project_dir, state_store):
        indexing_pipeline.index(project_dir)
        status = collect_status(state_store, BrokenVectorStore())
        assert len(status.projects) == 1
        assert status.vector_points is None
        assert "qdrant unreachable" in status.vector_error
