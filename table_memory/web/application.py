from importlib import metadata

from fastapi import FastAPI
from loguru import logger

from table_memory.logging_config import configure_logging
from table_memory.services.vector_db.store import VectorCollectionStore
from table_memory.web.api.router import api_router
from table_memory.web.lifetime import register_shutdown_event, register_startup_event


def get_app(vector_store: VectorCollectionStore) -> FastAPI:
    """
    Get FastAPI application.

    This is the main constructor of an application. The vector store
    is built by the host, which owns the table engine and chat context
    it is wired to.

    :param vector_store: vector store served by the API.
    :return: application.
    """
    configure_logging()

    logger.info("Starting table memory application")

    app = FastAPI(
        title="table_memory",
        version=metadata.version("table-memory"),
        docs_url="/api/docs",
        redoc_url="/api/redoc",
        openapi_url="/api/openapi.json",
    )
    app.state.vector_store = vector_store

    # Adds startup and shutdown events.
    register_startup_event(app)
    register_shutdown_event(app)

    # Main router for the API.
    app.include_router(router=api_router, prefix="/api")

    return app
