"""Embedding services module."""

from table_memory.services.embedding.config import (
    EmbeddingConfig,
    EmbeddingConfigUpdate,
    merge_config,
)
from table_memory.services.embedding.client import CostEstimate, EmbeddingClient
from table_memory.services.embedding.transport import (
    AiohttpTransport,
    HttpTransport,
    TransportResponse,
)

__all__ = [
    "AiohttpTransport",
    "CostEstimate",
    "EmbeddingClient",
    "EmbeddingConfig",
    "EmbeddingConfigUpdate",
    "HttpTransport",
    "TransportResponse",
    "merge_config",
]
