import asyncio
import json

import pytest
from loguru import logger
from pydantic import ValidationError

from table_memory.services.embedding.client import EmbeddingClient
from table_memory.services.embedding.config import EmbeddingConfigUpdate, merge_config
from table_memory.services.errors import (
    ApiError,
    ConfigError,
    FormatError,
    InvalidArgumentError,
    NetworkError,
)
from table_memory.tests.fakes import EMBEDDINGS_API_URL


def test_embed_sends_openai_compatible_request(client, transport):
    vector = asyncio.run(client.embed("你好"))

    assert vector == pytest.approx(transport.vector_for("你好"))
    request = transport.requests[0]
    assert request["url"] == f"{EMBEDDINGS_API_URL}/embeddings"
    assert request["headers"]["Authorization"] == "Bearer test-key"
    assert request["payload"] == {
        "model": "test-model",
        "input": ["你好"],
        "encoding_format": "float",
    }


def test_embed_batch_splits_into_ordered_chunks(client, transport):
    texts = [f"row {i}" for i in range(250)]

    vectors = asyncio.run(client.embed_batch(texts))

    assert [len(call) for call in transport.calls] == [100, 100, 50]
    assert [text for call in transport.calls for text in call] == texts
    assert vectors == [pytest.approx(transport.vector_for(text)) for text in texts]


def test_retries_until_success(client, transport):
    transport.errors = [NetworkError("reset"), NetworkError("reset")]

    vector = asyncio.run(client.embed("hello"))

    assert len(transport.calls) == 3
    assert vector == pytest.approx(transport.vector_for("hello"))


def test_gives_up_after_retry_times(client, transport):
    third = NetworkError("third")
    transport.errors = [NetworkError("first"), NetworkError("second"), third]

    with pytest.raises(ApiError) as exc_info:
        asyncio.run(client.embed("hello"))

    assert len(transport.calls) == 3
    assert exc_info.value.cause is third


def test_backoff_grows_linearly(embedding_config, transport):
    client = EmbeddingClient(
        embedding_config.model_copy(update={"retry_delay": 0.01}),
        transport=transport,
    )
    transport.errors = [NetworkError("first"), NetworkError("second"), NetworkError("third")]
    waits = []
    sink_id = logger.add(
        lambda message: waits.append(message.record["extra"]["retry_wait"]),
        filter=lambda record: "retry_wait" in record["extra"],
    )

    try:
        with pytest.raises(ApiError):
            asyncio.run(client.embed("hello"))
    finally:
        logger.remove(sink_id)

    assert waits == pytest.approx([0.01, 0.02])


def test_http_error_status_is_kept(client, transport):
    transport.status = 401

    with pytest.raises(ApiError) as exc_info:
        asyncio.run(client.embed_batch(["a", "b"]))

    assert exc_info.value.status == 401
    assert len(transport.calls) == 3


def test_retry_times_one_means_single_attempt(embedding_config, transport):
    config = merge_config(embedding_config, EmbeddingConfigUpdate(retry_times=1))
    client = EmbeddingClient(config, transport=transport)
    transport.status = 500

    with pytest.raises(ApiError):
        asyncio.run(client.embed("hello"))

    assert len(transport.calls) == 1


class TestMalformedResponses:
    def test_invalid_json_is_not_retried(self, client, transport):
        transport.body = "<html>gateway</html>"

        with pytest.raises(FormatError):
            asyncio.run(client.embed("hello"))

        assert len(transport.calls) == 1

    def test_missing_data(self, client, transport):
        transport.body = json.dumps({"object": "list"})

        with pytest.raises(FormatError):
            asyncio.run(client.embed("hello"))

    def test_embedding_count_mismatch(self, client, transport):
        transport.body = json.dumps({"data": [{"embedding": [0.1, 0.2]}]})

        with pytest.raises(FormatError):
            asyncio.run(client.embed_batch(["a", "b"]))

    def test_item_without_embedding(self, client, transport):
        transport.body = json.dumps({"data": [{"index": 0}]})

        with pytest.raises(FormatError):
            asyncio.run(client.embed("hello"))


class TestInvalidInput:
    def test_missing_api_key_fails_before_any_request(self, embedding_config, transport):
        config = embedding_config.model_copy(update={"api_key": ""})
        client = EmbeddingClient(config, transport=transport)

        with pytest.raises(ConfigError):
            asyncio.run(client.embed("hello"))

        assert transport.calls == []

    def test_empty_text(self, client, transport):
        with pytest.raises(InvalidArgumentError):
            asyncio.run(client.embed(""))
        assert transport.calls == []

    def test_empty_batch(self, client, transport):
        with pytest.raises(InvalidArgumentError):
            asyncio.run(client.embed_batch([]))
        assert transport.calls == []


def test_connection_check(client, transport):
    assert asyncio.run(client.test_connection()) is True
    assert transport.calls == [[EmbeddingClient.PROBE_TEXT]]

    transport.status = 403
    assert asyncio.run(client.test_connection()) is False


def test_connection_check_without_key(embedding_config, transport):
    client = EmbeddingClient(
        embedding_config.model_copy(update={"api_key": ""}),
        transport=transport,
    )

    assert asyncio.run(client.test_connection()) is False
    assert transport.calls == []


@pytest.mark.parametrize(
    "text,expected",
    [
        ("", 0),
        ("你好", 2),
        ("hello", 2),
        ("hello world", 4),
        ("你好 world!", 5),
        ("42", 1),
    ],
)
def test_estimate_tokens(client, text, expected):
    assert client.estimate_tokens(text) == expected


def test_estimate_cost(embedding_config, transport):
    client = EmbeddingClient(
        embedding_config,
        transport=transport,
        cost_per_million_tokens=2.0,
    )

    estimate = client.estimate_cost(["你好", "hello world"])

    assert estimate.total_texts == 2
    assert estimate.total_tokens == 6
    assert estimate.estimated_cost == pytest.approx(6 / 1_000_000 * 2.0)
    assert estimate.currency == "USD"


class TestConfig:
    def test_update_merges_partial_config(self, client):
        before = client.get_config()

        updated = client.update_config(EmbeddingConfigUpdate(model="other-model"))

        assert updated.model == "other-model"
        assert updated.api_key == before.api_key
        assert updated.max_batch_size == before.max_batch_size
        assert before.model == "test-model"
        assert client.get_config().model == "other-model"

    def test_invalid_update_is_rejected(self, client):
        with pytest.raises(ValidationError):
            client.update_config(EmbeddingConfigUpdate(max_batch_size=0))

        assert client.get_config().max_batch_size == 100

    def test_update_changes_batching(self, client, transport):
        client.update_config(EmbeddingConfigUpdate(max_batch_size=2))

        asyncio.run(client.embed_batch(["a", "b", "c"]))

        assert transport.calls == [["a", "b"], ["c"]]


def test_close_releases_transport(client, transport):
    asyncio.run(client.close())

    assert transport.closed
