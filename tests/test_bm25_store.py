import shutil

import pytest

from coderag.storage.bm25 import BM25KeywordStore, DOCUMENTS_FILE, expand_identifiers

from fakes import make_unit


def _units(project_id="shop"):
    return [
        make_unit("Services/UserService.cs", 2, "UserService", "GetUserById",
                  "public User GetUserById(int id) { return _repo.Find(id); }", project_id=project_id),
        make_unit("Services/OrderService.cs", 2, "OrderService", "PlaceOrder",
                  "public void PlaceOrder(Order order) { _bus.Publish(order); }", project_id=project_id),
        make_unit("Services/Mailer.cs", 5, "Mailer", "SendWelcomeEmail",
                  "public void SendWelcomeEmail(string address) { _smtp.Send(address); }", project_id=project_id),
    ]


class TestExpandIdentifiers:

    def test_camel_case_pieces_are_appended(self):
        expanded = expand_identifiers("GetUserById")
        assert expanded.startswith("GetUserById")
        assert expanded.split("\n")[1].split() == ["Get", "User", "By", "Id"]

    def test_snake_case_and_acronyms(self):
        assert "HTTP" in expand_identifiers("parseHTTPRequest")
        assert "retry" in expand_identifiers("max_retry_count")

    def test_plain_words_are_unchanged(self):
        assert expand_identifiers("order total") == "order total"


class TestBM25KeywordStore:

    def test_empty_store(self, tmp_path):
        store = BM25KeywordStore(tmp_path / "bm25")
        store.open()
        assert store.search("anything", top_k=5) == []
        assert store.count() == 0

    def test_rejects_non_positive_top_k(self, tmp_path):
        store = BM25KeywordStore(tmp_path / "bm25")
        with pytest.raises(ValueError):
            store.search("user", top_k=0)

    def test_finds_identifier_pieces(self, tmp_path):
        store = BM25KeywordStore(tmp_path / "bm25")
        store.index(_units())
        hits = store.search("welcome email", top_k=3)
        assert hits[0].member_name == "SendWelcomeEmail"
        assert hits[0].score > 0
        assert hits[0].body.startswith("public void SendWelcomeEmail")

    def test_only_positive_scores_are_returned(self, tmp_path):
        store = BM25KeywordStore(tmp_path / "bm25")
        store.index(_units())
        hits = store.search("publish", top_k=10)
        assert [h.member_name for h in hits] == ["PlaceOrder"]

    def test_stopword_only_query(self, tmp_path):
        store = BM25KeywordStore(tmp_path / "bm25")
        store.index(_units())
        assert store.search("the and of", top_k=5) == []

    def test_persists_across_instances(self, tmp_path):
        BM25KeywordStore(tmp_path / "bm25").index(_units())
        assert (tmp_path / "bm25" / DOCUMENTS_FILE).exists()

        reopened = BM25KeywordStore(tmp_path / "bm25")
        reopened.open()
        assert reopened.count() == 3
        assert reopened.search("order", top_k=1)[0].member_name == "PlaceOrder"

    def test_reindexing_same_unit_replaces_document(self, tmp_path):
        store = BM25KeywordStore(tmp_path / "bm25")
        store.index(_units())
        store.index(_units()[:1])
        assert store.count() == 3

    def test_project_filter(self, tmp_path):
        store = BM25KeywordStore(tmp_path / "bm25")
        store.index(_units("shop") + _units("billing"))
        hits = store.search("order", top_k=10, project_id="billing")
        assert hits
        assert {h.project_id for h in hits} == {"billing"}

    def test_delete_by_files(self, tmp_path):
        store = BM25KeywordStore(tmp_path / "bm25")
        store.index(_units("shop") + _units("billing"))
        store.delete_by_files("shop", ["Services/OrderService.cs"])
        assert store.count("shop") == 2
        assert store.count("billing") == 3
        assert all(h.project_id == "billing" for h in store.search("order", top_k=10))

    def test_delete_by_project(self, tmp_path):
        store = BM25KeywordStore(tmp_path / "bm25")
        store.index(_units("shop") + _units("billing"))
        store.delete_by_project("shop")
        assert store.count() == 3

        reopened = BM25KeywordStore(tmp_path / "bm25")
        assert reopened.count("shop") == 0

    def test_delete_all(self, tmp_path):
        store = BM25KeywordStore(tmp_path / "bm25")
        store.index(_units())
        store.delete_all()
        assert not (tmp_path / "bm25").exists()
        assert store.search("order", top_k=5) == []

        store.index(_units()[:1])
        assert store.count() == 1

    def test_missing_index_is_rebuilt_from_documents(self, tmp_path):
        BM25KeywordStore(tmp_path / "bm25").index(_units())
        shutil.rmtree(tmp_path / "bm25" / "index")

        reopened = BM25KeywordStore(tmp_path / "bm25")
        assert reopened.search("publish", top_k=1)[0].member_name == "PlaceOrder"

    def test_corrupt_documents_file_starts_empty(self, tmp_path):
        (tmp_path / "bm25").mkdir()
        (tmp_path / "bm25" / DOCUMENTS_FILE).write_text("{not json", encoding="utf-8")

        store = BM25KeywordStore(tmp_path / "bm25")
        store.open()
        assert store.count() == 0
        assert store.search("publish", top_k=3) == []

        store.index(_units())
        assert store.count() == 3
        assert store.search("publish", top_k=1)[0].member_name == "PlaceOrder"
