import threading

from coderag.storage.state import JsonIndexStateStore, ProjectIndexState, STATE_FILE, state_key


def _state(path, project_id="shop-1234", revision="abc123"):
    return ProjectIndexState(
        project_path=str(path),
        project_id=project_id,
        last_indexed_revision=revision,
        total_units=3,
        total_files=2,
        embedding_model="fake-embed",
        embedding_dimensions=16,
        file_hashes={"Services/UserService.cs": "deadbeef"},
    )


class TestJsonIndexStateStore:

    def test_missing_file_is_empty(self, tmp_path):
        store = JsonIndexStateStore(tmp_path / "data")
        assert store.load(tmp_path / "shop") is None
        assert store.load_all().projects == {}

    def test_save_and_load(self, tmp_path):
        store = JsonIndexStateStore(tmp_path / "data")
        store.save(_state(tmp_path / "shop"))

        reopened = JsonIndexStateStore(tmp_path / "data")
        loaded = reopened.load(tmp_path / "shop")
        assert loaded is not None
        assert loaded.project_id == "shop-1234"
        assert loaded.last_indexed_revision == "abc123"
        assert loaded.file_hashes == {"Services/UserService.cs": "deadbeef"}

    def test_keys_are_resolved_paths(self, tmp_path):
        (tmp_path / "shop").mkdir()
        store = JsonIndexStateStore(tmp_path / "data")
        store.save(_state(tmp_path / "shop"))
        assert store.load(tmp_path / "shop" / ".." / "shop") is not None
        assert list(store.load_all().projects) == [state_key(tmp_path / "shop")]

    def test_save_replaces_existing_entry(self, tmp_path):
        store = JsonIndexStateStore(tmp_path / "data")
        store.save(_state(tmp_path / "shop", revision="one"))
        store.save(_state(tmp_path / "shop", revision="two"))
        assert len(store.load_all().projects) == 1
        assert store.load(tmp_path / "shop").last_indexed_revision == "two"

    def test_multiple_projects(self, tmp_path):
        store = JsonIndexStateStore(tmp_path / "data")
        store.save(_state(tmp_path / "shop", project_id="shop-1"))
        store.save(_state(tmp_path / "billing", project_id="billing-2"))
        assert store.load(tmp_path / "shop").project_id == "shop-1"
        assert store.load(tmp_path / "billing").project_id == "billing-2"

    def test_corrupt_file_is_treated_as_absent(self, tmp_path):
        data_dir = tmp_path / "data"
        data_dir.mkdir()
        (data_dir / STATE_FILE).write_text("{not json", encoding="utf-8")
        store = JsonIndexStateStore(data_dir)
        assert store.load(tmp_path / "shop") is None

        store.save(_state(tmp_path / "shop"))
        assert store.load(tmp_path / "shop") is not None

    def test_invalid_schema_is_treated_as_absent(self, tmp_path):
        data_dir = tmp_path / "data"
        data_dir.mkdir()
        (data_dir / STATE_FILE).write_text('{"projects": {"x": {"total_units": "many"}}}', encoding="utf-8")
        assert JsonIndexStateStore(data_dir).load_all().projects == {}

    def test_write_leaves_no_temp_files(self, tmp_path):
        store = JsonIndexStateStore(tmp_path / "data")
        store.save(_state(tmp_path / "shop"))
        store.save(_state(tmp_path / "billing"))
        assert sorted(p.name for p in (tmp_path / "data").iterdir()) == [STATE_FILE]

    def test_delete(self, tmp_path):
        store = JsonIndexStateStore(tmp_path / "data")
        store.save(_state(tmp_path / "shop"))
        store.save(_state(tmp_path / "billing"))

        assert store.delete(tmp_path / "shop") is True
        assert store.delete(tmp_path / "shop") is False
        assert store.load(tmp_path / "shop") is None
        assert store.load(tmp_path / "billing") is not None

    def test_delete_all(self, tmp_path):
        store = JsonIndexStateStore(tmp_path / "data")
        store.save(_state(tmp_path / "shop"))
        store.delete_all()
        assert not (tmp_path / "data" / STATE_FILE).exists()
        store.delete_all()

    def test_shared_lock_serializes_writers(self, tmp_path):
        lock = threading.Lock()
        first = JsonIndexStateStore(tmp_path / "data", lock=lock)
        second = JsonIndexStateStore(tmp_path / "data", lock=lock)

        def write(store, name):
            for i in range(10):
                store.save(_state(tmp_path / f"{name}{i}", project_id=f"{name}{i}"))

        threads = [
            threading.Thread(target=write, args=(first, "a")),
            threading.Thread(target=write, args=(second, "b")),
        ]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert len(first.load_all().projects) == 20
