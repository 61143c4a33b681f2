"""Schema for semantic table memory API."""

from typing import Dict, List, Optional

from pydantic import BaseModel, Field

from table_memory.services.vector_db.types import RowMetadata


class SearchRequest(BaseModel):
    """Request model for semantic search."""

    query: str = Field(..., min_length=1, description="Text to search for")
    top_k: Optional[int] = Field(
        None, ge=1, le=100, description="Maximum number of results (default from settings)"
    )
    min_score: Optional[float] = Field(
        None, ge=0.0, le=1.0, description="Minimum similarity (default from settings)"
    )
    table_name: Optional[str] = Field(
        None, description="Only search rows of the table with this name"
    )


class SearchHit(BaseModel):
    """One row matching a search."""

    id: str = Field(..., description="Vector record id")
    score: float = Field(..., description="Cosine similarity to the query")
    metadata: RowMetadata = Field(..., description="Table row the vector was built from")


class SearchResponse(BaseModel):
    """Response model for semantic search."""

    results: List[SearchHit] = Field(..., description="Hits by descending score")


class StatsResponse(BaseModel):
    """Response model for vector store statistics."""

    chat_id: Optional[str] = Field(None, description="Key of the active conversation")
    total_vectors: int = Field(..., description="Number of stored row vectors")
    table_groups: Dict[str, int] = Field(..., description="Vector count per table name")
    is_initialized: bool = Field(..., description="Whether the store is ready")
    is_vectorizing: bool = Field(..., description="Whether a bulk vectorization runs")


class VectorizeResponse(BaseModel):
    """Response model for bulk vectorization operations."""

    success: bool = Field(..., description="Indicates if the operation was successful")
    vectorized_rows: int = Field(..., description="Number of rows embedded")


class OperationResponse(BaseModel):
    """Response model for simple operations."""

    success: bool = Field(..., description="Indicates if the operation was successful")


class ConnectionTestRequest(BaseModel):
    """Embedding settings to try before saving them."""

    api_url: Optional[str] = Field(None, description="Embedding API base URL")
    api_key: Optional[str] = Field(None, description="Embedding API key")
    model: Optional[str] = Field(None, description="Embedding model name")
