import enum
from pathlib import Path
from tempfile import gettempdir
from typing import TYPE_CHECKING, List, Optional

from pydantic_settings import BaseSettings, SettingsConfigDict

if TYPE_CHECKING:
    from table_memory.services.embedding.config import EmbeddingConfig

TEMP_DIR = Path(gettempdir())


class LogLevel(str, enum.Enum):  # noqa: WPS600
    """Possible log levels."""

    NOTSET = "NOTSET"
    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    FATAL = "FATAL"


class Settings(BaseSettings):
    """
    Application settings.

    These parameters can be configured
    with environment variables.
    """

    log_level: LogLevel = LogLevel.INFO
    enable_file_logging: bool = False
    logs_dir: Optional[str] = None
    structured_logging: bool = False

    # Master switch for semantic table memory
    vector_enabled: bool = False

    # Embedding API settings
    embedding_api_url: str = "https://api.siliconflow.cn/v1"
    embedding_api_key: str = ""
    embedding_model: str = "BAAI/bge-large-zh-v1.5"
    embedding_max_batch_size: int = 100
    embedding_retry_times: int = 3
    embedding_retry_delay: float = 1.0  # Seconds, multiplied by the attempt number
    embedding_timeout: int = 30  # Seconds
    # Advisory only, used for cost display
    embedding_cost_per_million_tokens: float = 0.0001

    # Search settings
    search_top_k: int = 10
    search_min_score: float = 0.5

    # Vectorization strategy
    auto_vectorize: bool = True
    vectorize_on_edit: bool = True

    # Durable collection storage
    db_file: Path = TEMP_DIR / "table_memory.sqlite3"
    db_echo: bool = False

    @property
    def db_url(self) -> str:
        """
        Assemble database URL from settings.

        :return: database URL.
        """
        return f"sqlite+aiosqlite:///{self.db_file}"

    def embedding_config(self) -> "EmbeddingConfig":
        """
        Build the embedding client configuration from settings.

        :return: embedding configuration.
        """
        # Lazy import to avoid circular imports
        from table_memory.services.embedding.config import EmbeddingConfig

        return EmbeddingConfig(
            api_url=self.embedding_api_url,
            api_key=self.embedding_api_key,
            model=self.embedding_model,
            max_batch_size=self.embedding_max_batch_size,
            retry_times=self.embedding_retry_times,
            retry_delay=self.embedding_retry_delay,
        )

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_prefix="TABLE_MEMORY_",
    )


def validate_vector_settings(config: Settings) -> List[str]:
    """
    Check the settings a user can edit for obvious mistakes.

    :param config: settings to validate
    :return: list of human readable problems, empty when valid
    """
    errors = []

    if not config.embedding_api_url:
        errors.append("Embedding API URL must not be empty")

    if not config.embedding_api_key:
        errors.append("Embedding API key must not be empty")

    if config.search_top_k < 1 or config.search_top_k > 100:
        errors.append("search_top_k must be between 1 and 100")

    if config.search_min_score < 0 or config.search_min_score > 1:
        errors.append("search_min_score must be between 0 and 1")

    return errors


settings = Settings()
