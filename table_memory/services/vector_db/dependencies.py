"""Vector store dependencies module."""

from fastapi import HTTPException, Request, status

from table_memory.services.vector_db.store import VectorCollectionStore


def get_vector_store(request: Request) -> VectorCollectionStore:
    """
    Get the vector store owned by the application.

    :param request: current request
    :returns: VectorCollectionStore instance
    :raises HTTPException: if the application was built without a store
    """
    store = getattr(request.app.state, "vector_store", None)
    if store is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Vector store is not configured",
        )
    return store


def get_ready_vector_store(request: Request) -> VectorCollectionStore:
    """
    Get the vector store, refusing requests until it is initialized.

    :param request: current request
    :returns: initialized VectorCollectionStore instance
    :raises HTTPException: if the store is not initialized
    """
    store = get_vector_store(request)
    if not store.is_initialized:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Vector store is not initialized",
        )
    return store
