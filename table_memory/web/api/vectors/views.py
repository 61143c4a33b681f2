"""Semantic table memory API views."""

from fastapi import APIRouter, Depends, HTTPException, status
from loguru import logger

from table_memory.services.embedding.config import EmbeddingConfigUpdate, merge_config
from table_memory.services.errors import (
    ApiError,
    DimensionMismatchError,
    FormatError,
    NetworkError,
)
from table_memory.services.vector_db.dependencies import (
    get_ready_vector_store,
    get_vector_store,
)
from table_memory.services.vector_db.store import VectorCollectionStore
from table_memory.settings import settings
from table_memory.web.api.vectors.schema import (
    ConnectionTestRequest,
    OperationResponse,
    SearchHit,
    SearchRequest,
    SearchResponse,
    StatsResponse,
    VectorizeResponse,
)

router = APIRouter()


@router.post("/search", response_model=SearchResponse, status_code=status.HTTP_200_OK)
async def search_rows(
    request: SearchRequest,
    store: VectorCollectionStore = Depends(get_ready_vector_store),
) -> SearchResponse:
    """
    Find the table rows most similar to a query.

    :param request: query and ranking options
    :param store: vector store instance
    :returns: ranked rows
    :raises HTTPException: if embedding the query fails or stored vectors
        do not match the embedding model
    """
    top_k = request.top_k or settings.search_top_k
    min_score = (
        request.min_score if request.min_score is not None else settings.search_min_score
    )
    row_filter = None
    if request.table_name:
        table_name = request.table_name
        row_filter = lambda metadata: metadata.table_name == table_name  # noqa: E731

    try:
        results = await store.search(
            request.query, top_k=top_k, filter=row_filter, min_score=min_score
        )
    except DimensionMismatchError as e:
        logger.error(f"Stored vectors do not match the embedding model: {e}")
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=f"Stored vectors do not match the embedding model, rebuild required: {e}",
        )
    except (ApiError, FormatError, NetworkError) as e:
        raise HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail=f"Failed to embed query: {e}",
        )

    return SearchResponse(
        results=[
            SearchHit(id=hit.id, score=hit.score, metadata=hit.metadata)
            for hit in results
        ]
    )


@router.get("/stats", response_model=StatsResponse, status_code=status.HTTP_200_OK)
async def get_stats(
    store: VectorCollectionStore = Depends(get_vector_store),
) -> StatsResponse:
    """
    Get vector counts of the active conversation.

    :param store: vector store instance
    :returns: statistics
    """
    stats = store.get_stats()
    return StatsResponse(**stats.model_dump())


@router.post("/rebuild", response_model=VectorizeResponse, status_code=status.HTTP_200_OK)
async def rebuild_vectors(
    store: VectorCollectionStore = Depends(get_ready_vector_store),
) -> VectorizeResponse:
    """
    Drop and re-embed every row of the active conversation.

    :param store: vector store instance
    :returns: number of rows embedded
    :raises HTTPException: if another vectorization is already running
    """
    if store.is_vectorizing:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="Vectorization already in progress",
        )

    vectorized = await store.rebuild_all()
    return VectorizeResponse(success=True, vectorized_rows=vectorized)


@router.post("/switch", response_model=StatsResponse, status_code=status.HTTP_200_OK)
async def switch_chat(
    store: VectorCollectionStore = Depends(get_ready_vector_store),
) -> StatsResponse:
    """
    Persist the resident conversation and load the now active one.

    :param store: vector store instance
    :returns: statistics of the loaded conversation
    """
    await store.switch_chat()
    return StatsResponse(**store.get_stats().model_dump())


@router.delete("/chat", response_model=OperationResponse, status_code=status.HTTP_200_OK)
async def clear_chat(
    store: VectorCollectionStore = Depends(get_ready_vector_store),
) -> OperationResponse:
    """
    Forget all vectors of the active conversation.

    :param store: vector store instance
    :returns: operation status
    """
    await store.clear_current_chat()
    return OperationResponse(success=True)


@router.post(
    "/test-connection",
    response_model=OperationResponse,
    status_code=status.HTTP_200_OK,
)
async def test_connection(
    request: ConnectionTestRequest,
    store: VectorCollectionStore = Depends(get_vector_store),
) -> OperationResponse:
    """
    Try embedding settings without applying them.

    :param request: settings overriding the configured ones
    :param store: vector store instance, used for its client factory
    :returns: whether the embedding API answered
    """
    config = merge_config(
        settings.embedding_config(),
        EmbeddingConfigUpdate(**request.model_dump()),
    )
    client = store.client_factory(config)
    try:
        success = await client.test_connection()
    finally:
        await client.close()

    return OperationResponse(success=success)
