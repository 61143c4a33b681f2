"""Shared types for vector database module."""

from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

COLLECTION_SCHEMA_VERSION = "1.0"


def utcnow() -> datetime:
    """Timezone aware current time."""
    return datetime.now(timezone.utc)


class _CamelModel(BaseModel):
    """Accepts snake_case or camelCase input, dumps camelCase with by_alias."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class RowMetadata(_CamelModel):
    """Where a vectorized table row came from."""

    table_uid: str
    table_name: str
    row_index: int
    headers: List[str] = Field(default_factory=list)
    values: List[Any] = Field(default_factory=list)
    timestamp: datetime = Field(default_factory=utcnow)


class VectorRecord(_CamelModel):
    """Vector record with metadata."""

    id: str
    vector: List[float]
    metadata: RowMetadata


class VectorCollection(_CamelModel):
    """All vector records of one conversation, as persisted."""

    chat_id: str
    vectors: List[VectorRecord] = Field(default_factory=list)
    last_update: datetime = Field(default_factory=utcnow)
    version: str = COLLECTION_SCHEMA_VERSION


class SearchResult(BaseModel):
    """One ranked search hit."""

    id: str
    score: float
    metadata: RowMetadata


class VectorStats(BaseModel):
    """Read-only diagnostic view of a vector store."""

    total_vectors: int
    table_groups: Dict[str, int]
    chat_id: Optional[str] = None
    is_initialized: bool = False
    is_vectorizing: bool = False
