"""Pytest configuration and fixtures for coderag tests."""

import pytest

from coderag.indexing.pipeline import IndexingPipeline
from coderag.search.fusion import ReciprocalRankFusion
from coderag.search.query import QueryPipeline
from coderag.storage.state import JsonIndexStateStore

from fakes import (
    FakeChangeDetector,
    FakeEmbedder,
    FakeExtractor,
    FakeModel,
    InMemoryKeywordStore,
    InMemoryVectorStore,
    make_unit,
)


SERVICE_BODY = "public User GetUser(int id)\n{\n    return _repo.Find(id);\n}"
CTOR_BODY = "public UserService(IUserRepository repo)\n{\n    _repo = repo;\n}"
ORDER_BODY = "public void PlaceOrder(Order order)\n{\n    _bus.Publish(order);\n}"


@pytest.fixture
def project_dir(tmp_path):
    """A small C# project on disk with two source files."""
    root = tmp_path / "shop"
    (root / "Services").mkdir(parents=True)
    (root / "Services" / "UserService.cs").write_text(
        "class UserService {\n" + CTOR_BODY + "\n" + SERVICE_BODY + "\n}\n", encoding="utf-8"
    )
    (root / "Services" / "OrderService.cs").write_text(
        "class OrderService {\n" + ORDER_BODY + "\n}\n", encoding="utf-8"
    )
    return root


@pytest.fixture
def extractor():
    return FakeExtractor(
        {
            "Services/UserService.cs": [
                make_unit("Services/UserService.cs", 2, "UserService", "UserService", CTOR_BODY),
                make_unit("Services/UserService.cs", 6, "UserService", "GetUser", SERVICE_BODY),
            ],
            "Services/OrderService.cs": [
                make_unit("Services/OrderService.cs", 2, "OrderService", "PlaceOrder", ORDER_BODY),
            ],
        }
    )


@pytest.fixture
def embedder():
    return FakeEmbedder()


@pytest.fixture
def vector_store():
    return InMemoryVectorStore()


@pytest.fixture
def keyword_store():
    return InMemoryKeywordStore()


@pytest.fixture
def state_store(tmp_path):
    return JsonIndexStateStore(tmp_path / "data")


@pytest.fixture
def change_detector():
    return FakeChangeDetector(revision="rev1")


@pytest.fixture
def model():
    return FakeModel()


@pytest.fixture
def indexing_pipeline(extractor, embedder, vector_store, keyword_store, state_store, change_detector):
    return IndexingPipeline(
        extractor=extractor,
        embedder=embedder,
        vector_store=vector_store,
        keyword_store=keyword_store,
        state_store=state_store,
        change_detector=change_detector,
    )


@pytest.fixture
def query_pipeline(embedder, vector_store, keyword_store, model):
    return QueryPipeline(
        embedder=embedder,
        vector_store=vector_store,
        keyword_store=keyword_store,
        fusion=ReciprocalRankFusion(k=60),
        model=model,
    )
