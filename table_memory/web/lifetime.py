from typing import Awaitable, Callable

from fastapi import FastAPI
from loguru import logger

from table_memory.services.errors import TableMemoryError
from table_memory.settings import settings, validate_vector_settings


async def _init_vector_store(app: FastAPI) -> None:
    """
    Initialize the vector store if semantic memory is enabled.

    Failures are logged and leave the feature disabled, the application
    keeps serving.

    :param app: fastAPI application.
    """
    store = app.state.vector_store
    if not settings.vector_enabled:
        logger.info("Vector search disabled, vector store not initialized")
        return

    errors = validate_vector_settings(settings)
    if errors:
        logger.warning(f"Invalid vector settings, vector store not initialized: {errors}")
        return

    try:
        await store.init(settings.embedding_config())
    except TableMemoryError as e:
        logger.error(f"Vector store unavailable for this session: {e}")


def register_startup_event(
    app: FastAPI,
) -> Callable[[], Awaitable[None]]:  # pragma: no cover
    """
    Actions to run on application startup.

    :param app: the fastAPI application.
    :return: function that actually performs actions.
    """

    @app.on_event("startup")
    async def _startup() -> None:  # noqa: WPS430
        await _init_vector_store(app)

    return _startup


def register_shutdown_event(
    app: FastAPI,
) -> Callable[[], Awaitable[None]]:  # pragma: no cover
    """
    Actions to run on application's shutdown.

    :param app: fastAPI application.
    :return: function that actually performs actions.
    """

    @app.on_event("shutdown")
    async def _shutdown() -> None:  # noqa: WPS430
        try:
            await app.state.vector_store.close()
        except TableMemoryError as e:
            logger.error(f"Failed to flush vectors on shutdown: {e}")

    return _shutdown
