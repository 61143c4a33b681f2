"""Embedding client configuration."""

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class EmbeddingConfig(BaseModel):
    """Connection and batching parameters of an embedding client."""

    model_config = ConfigDict(frozen=True)

    api_url: str = "https://api.siliconflow.cn/v1"
    api_key: str = ""
    model: str = "BAAI/bge-large-zh-v1.5"
    max_batch_size: int = Field(default=100, ge=1)
    retry_times: int = Field(default=3, ge=1)
    # Seconds; the wait before retry n is retry_delay * n
    retry_delay: float = Field(default=1.0, ge=0)

    @property
    def embeddings_url(self) -> str:
        """Full URL of the embeddings endpoint."""
        return f"{self.api_url.rstrip('/')}/embeddings"


class EmbeddingConfigUpdate(BaseModel):
    """
    Partial update of an :class:`EmbeddingConfig`.

    Every field of the config is overridable. Fields left as ``None``
    keep their current value.
    """

    api_url: Optional[str] = None
    api_key: Optional[str] = None
    model: Optional[str] = None
    max_batch_size: Optional[int] = None
    retry_times: Optional[int] = None
    retry_delay: Optional[float] = None


def merge_config(
    base: EmbeddingConfig,
    update: EmbeddingConfigUpdate,
) -> EmbeddingConfig:
    """
    Apply a partial update to a configuration.

    :param base: current configuration
    :param update: fields to override
    :returns: new validated configuration, ``base`` is left untouched
    """
    merged = base.model_dump()
    merged.update(update.model_dump(exclude_none=True))
    return EmbeddingConfig.model_validate(merged)
