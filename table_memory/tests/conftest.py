import pytest

from table_memory.services.embedding.client import EmbeddingClient
from table_memory.services.embedding.config import EmbeddingConfig
from table_memory.services.vector_db.sources import StaticTable
from table_memory.services.vector_db.storage import InMemoryCollectionStorage
from table_memory.services.vector_db.store import VectorCollectionStore
from table_memory.tests.fakes import EMBEDDINGS_API_URL, FakeHost, FakeTransport


@pytest.fixture(autouse=True)
def no_batch_pause(monkeypatch):
    monkeypatch.setattr(EmbeddingClient, "BATCH_PAUSE_SECONDS", 0)


@pytest.fixture
def transport() -> FakeTransport:
    return FakeTransport()


@pytest.fixture
def embedding_config() -> EmbeddingConfig:
    return EmbeddingConfig(
        api_url=EMBEDDINGS_API_URL,
        api_key="test-key",
        model="test-model",
        retry_delay=0,
    )


@pytest.fixture
def client(embedding_config, transport) -> EmbeddingClient:
    return EmbeddingClient(embedding_config, transport=transport)


@pytest.fixture
def characters_table() -> StaticTable:
    return StaticTable(
        name="Characters",
        uid="sheet_chars",
        headers=["Name", "Age"],
        rows=[["Alice", 30], ["Bob", 25]],
    )


@pytest.fixture
def host() -> FakeHost:
    return FakeHost()


@pytest.fixture
def storage() -> InMemoryCollectionStorage:
    return InMemoryCollectionStorage()


@pytest.fixture
def make_store(host, storage, transport):
    def _make_store(**kwargs) -> VectorCollectionStore:
        kwargs.setdefault("storage", storage)
        return VectorCollectionStore(
            tables=host,
            context=host,
            client_factory=lambda config: EmbeddingClient(config, transport=transport),
            **kwargs,
        )

    return _make_store
