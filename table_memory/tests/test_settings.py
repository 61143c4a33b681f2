from table_memory.settings import Settings, validate_vector_settings


def test_defaults_need_an_api_key():
    errors = validate_vector_settings(Settings(embedding_api_key=""))

    assert errors == ["Embedding API key must not be empty"]


def test_out_of_range_search_settings():
    errors = validate_vector_settings(
        Settings(embedding_api_key="key", search_top_k=0, search_min_score=1.5)
    )

    assert len(errors) == 2


def test_valid_settings():
    assert validate_vector_settings(Settings(embedding_api_key="key")) == []


def test_embedding_config_from_settings():
    config = Settings(
        embedding_api_url="http://embeddings.test/v1/",
        embedding_api_key="key",
        embedding_model="model",
        embedding_max_batch_size=16,
        embedding_retry_times=5,
        embedding_retry_delay=0.5,
    ).embedding_config()

    assert config.embeddings_url == "http://embeddings.test/v1/embeddings"
    assert config.api_key == "key"
    assert config.model == "model"
    assert config.max_batch_size == 16
    assert config.retry_times == 5
    assert config.retry_delay == 0.5


def test_db_url(tmp_path):
    settings = Settings(db_file=tmp_path / "memory.sqlite3")

    assert settings.db_url == f"sqlite+aiosqlite:///{tmp_path / 'memory.sqlite3'}"
