"""Durable storage of per-conversation vector collections."""

import abc
from typing import Dict, Optional

from loguru import logger
from pydantic import ValidationError
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from table_memory.db.meta import meta
from table_memory.db.models import load_all_models
from table_memory.db.models.collections import VectorCollectionModel
from table_memory.services.errors import StorageError
from table_memory.services.vector_db.types import VectorCollection


class CollectionStorage(abc.ABC):
    """
    Keyed async store holding at most one collection per chat id.

    Writes are whole-collection upserts, the last write wins.
    """

    async def open(self) -> None:
        """Prepare the store for use."""

    @abc.abstractmethod
    async def get(self, chat_id: str) -> Optional[VectorCollection]:
        """
        Read the collection stored for ``chat_id``.

        :param chat_id: conversation key
        :returns: the stored collection or None if there is none
        :raises StorageError: if the read failed
        """

    @abc.abstractmethod
    async def put(self, collection: VectorCollection) -> None:
        """
        Store ``collection`` under its chat id, replacing any previous value.

        :raises StorageError: if the write failed
        """

    async def close(self) -> None:
        """Release resources held by the store."""


class InMemoryCollectionStorage(CollectionStorage):
    """
    Process local store.

    Collections are kept serialized so that callers never share record
    objects with the store.
    """

    def __init__(self) -> None:
        self._documents: Dict[str, str] = {}

    async def get(self, chat_id: str) -> Optional[VectorCollection]:
        document = self._documents.get(chat_id)
        if document is None:
            return None
        return VectorCollection.model_validate_json(document)

    async def put(self, collection: VectorCollection) -> None:
        self._documents[collection.chat_id] = collection.model_dump_json(by_alias=True)

    def __contains__(self, chat_id: str) -> bool:
        return chat_id in self._documents


class SqlCollectionStorage(CollectionStorage):
    """Store backed by a SQLAlchemy async engine, one row per conversation."""

    def __init__(self, db_url: str, echo: bool = False) -> None:
        """
        Initialize the store.

        :param db_url: async SQLAlchemy URL, e.g. ``sqlite+aiosqlite:///memory.db``
        :param echo: log emitted SQL
        """
        self.db_url = db_url
        self.echo = echo
        self._engine: Optional[AsyncEngine] = None
        self._session_factory: Optional[async_sessionmaker[AsyncSession]] = None

    async def open(self) -> None:
        """Create the engine and the tables if they do not exist yet."""
        if self._engine is not None:
            return

        load_all_models()
        try:
            engine = create_async_engine(self.db_url, echo=self.echo)
            async with engine.begin() as connection:
                await connection.run_sync(meta.create_all)
        except SQLAlchemyError as e:
            raise StorageError(f"Failed to open vector storage {self.db_url}: {e}") from e

        self._engine = engine
        self._session_factory = async_sessionmaker(engine, expire_on_commit=False)
        logger.info(f"Opened vector storage: {self.db_url}")

    def _sessions(self) -> async_sessionmaker[AsyncSession]:
        if self._session_factory is None:
            raise StorageError("Vector storage is not open")
        return self._session_factory

    async def get(self, chat_id: str) -> Optional[VectorCollection]:
        session_factory = self._sessions()
        try:
            async with session_factory() as session:
                row = await session.get(VectorCollectionModel, chat_id)
                if row is None:
                    return None
                return VectorCollection(
                    chat_id=row.chat_id,
                    vectors=row.vectors,
                    last_update=row.last_update,
                    version=row.version,
                )
        except SQLAlchemyError as e:
            raise StorageError(f"Failed to read vectors of {chat_id}: {e}") from e
        except ValidationError as e:
            raise StorageError(f"Stored vectors of {chat_id} are corrupt: {e}") from e

    async def put(self, collection: VectorCollection) -> None:
        session_factory = self._sessions()
        document = collection.model_dump(mode="json", by_alias=True)
        try:
            async with session_factory() as session:
                await session.merge(
                    VectorCollectionModel(
                        chat_id=collection.chat_id,
                        vectors=document["vectors"],
                        last_update=collection.last_update,
                        version=collection.version,
                    )
                )
                await session.commit()
        except SQLAlchemyError as e:
            raise StorageError(
                f"Failed to save vectors of {collection.chat_id}: {e}"
            ) from e

    async def close(self) -> None:
        if self._engine is not None:
            await self._engine.dispose()
            logger.debug(f"Closed vector storage: {self.db_url}")
        self._engine = None
        self._session_factory = None
