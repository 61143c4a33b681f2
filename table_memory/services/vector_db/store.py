"""Per-conversation vector collection of table rows."""

import asyncio
import enum
from collections import Counter
from typing import Callable, List, Optional

from loguru import logger

from table_memory.services.embedding.client import EmbeddingClient
from table_memory.services.embedding.config import EmbeddingConfig
from table_memory.services.errors import NetworkError, NotInitializedError
from table_memory.services.vector_db.sources import (
    ConversationContextProvider,
    TableProvider,
    TableSource,
    build_row_text,
    row_vector_id,
)
from table_memory.services.vector_db.storage import CollectionStorage
from table_memory.services.vector_db.types import (
    RowMetadata,
    SearchResult,
    VectorCollection,
    VectorRecord,
    VectorStats,
    utcnow,
)
from table_memory.services.vector_db.vector_math import rank_by_similarity

MetadataFilter = Callable[[RowMetadata], bool]


class StoreState(str, enum.Enum):
    """Lifecycle of a vector store."""

    UNINITIALIZED = "uninitialized"
    INITIALIZING = "initializing"
    READY = "ready"


class VectorCollectionStore:
    """
    Owns the vector records of the active conversation.

    Exactly one conversation is resident at a time. Records are mutated
    in memory one by one and the whole collection is written to durable
    storage after each batch operation and before switching chats.
    """

    def __init__(
        self,
        tables: TableProvider,
        context: ConversationContextProvider,
        storage: CollectionStorage,
        client_factory: Callable[[EmbeddingConfig], EmbeddingClient] = EmbeddingClient,
        auto_vectorize: bool = True,
        vectorize_on_edit: bool = True,
    ):
        """
        Initialize the vector store.

        :param tables: table engine enumerating the tables of the active chat
        :param context: provider of the active conversation identity
        :param storage: durable keyed collection storage
        :param client_factory: builds the embedding client during init
        :param auto_vectorize: vectorize all tables of a chat seen for the first time
        :param vectorize_on_edit: re-embed rows reported through handle_row_edit
        """
        self.tables = tables
        self.context = context
        self.storage = storage
        self.client_factory = client_factory
        self.auto_vectorize = auto_vectorize
        self.vectorize_on_edit = vectorize_on_edit

        self.state = StoreState.UNINITIALIZED
        self.embedding_client: Optional[EmbeddingClient] = None
        self.current_chat_id: Optional[str] = None
        self.vectors: List[VectorRecord] = []
        self.is_vectorizing = False

        # Held while the resident collection is swapped or bulk vectorized
        self._collection_lock = asyncio.Lock()
        self._init_finished: Optional[asyncio.Event] = None

    @property
    def is_initialized(self) -> bool:
        """True once init completed successfully."""
        return self.state == StoreState.READY

    async def init(self, config: EmbeddingConfig) -> None:
        """
        Connect to the embedding API, open storage and load the active chat.

        Calling it again once ready does nothing, calling it while another
        call is initializing waits for that call. On failure the store is
        left uninitialized and the error is raised.

        :param config: embedding API configuration
        :raises ConfigError: if the embedding configuration is incomplete
        :raises NetworkError: if the embedding API cannot be reached
        :raises StorageError: if the durable store cannot be opened
        :raises NotInitializedError: if the initialization waited for failed
        """
        if self.state == StoreState.READY:
            logger.info("Vector store already ready, skipping init")
            return

        if self.state == StoreState.INITIALIZING and self._init_finished is not None:
            logger.info("Vector store initialization in progress, waiting for it")
            await self._init_finished.wait()
            if not self.is_initialized:
                raise NotInitializedError("Concurrent vector store initialization failed")
            return

        self.state = StoreState.INITIALIZING
        self._init_finished = asyncio.Event()
        client: Optional[EmbeddingClient] = None
        storage_opened = False
        try:
            client = self.client_factory(config)
            client.validate_config()
            if not await client.test_connection():
                raise NetworkError("Embedding API connection test failed")
            self.embedding_client = client

            await self.storage.open()
            storage_opened = True
            await self.load_current_chat()
        except Exception as e:
            logger.error(f"Vector store initialization failed: {e}")
            self.state = StoreState.UNINITIALIZED
            self.embedding_client = None
            self.current_chat_id = None
            self.vectors = []
            if storage_opened:
                await self.storage.close()
            if client is not None:
                await client.close()
            raise
        else:
            self.state = StoreState.READY
            logger.info("Vector store initialized")
        finally:
            self._init_finished.set()

    def _require_client(self) -> EmbeddingClient:
        if self.embedding_client is None:
            raise NotInitializedError("Embedding client is not initialized")
        return self.embedding_client

    def get_current_chat_id(self) -> Optional[str]:
        """
        Stable key of the active conversation.

        :returns: ``{character}_{chat}`` or None without an addressable chat
        """
        context = self.context.get_context()
        if context is None or not context.chat_id:
            return None

        return f"{context.character_name or 'unknown'}_{context.chat_id}"

    async def load_current_chat(self) -> None:
        """
        Make the active conversation's collection resident.

        A chat with nothing stored yet starts empty and, with
        ``auto_vectorize``, gets all of its tables vectorized. If the stored
        collection cannot be read the resident chat is kept as it was.

        :raises StorageError: if the stored collection cannot be read
        """
        async with self._collection_lock:
            await self._load_current_chat()

    async def _load_current_chat(self) -> None:
        chat_id = self.get_current_chat_id()

        if not chat_id:
            logger.warning("No active chat, vector collection left empty")
            self.current_chat_id = None
            self.vectors = []
            return

        stored = await self.storage.get(chat_id)
        self.current_chat_id = chat_id
        if stored is not None:
            self.vectors = stored.vectors
            logger.info(f"Loaded {len(self.vectors)} vectors for chat {chat_id}")
            return

        self.vectors = []
        if self.auto_vectorize:
            logger.info(f"New chat {chat_id}, vectorizing all tables")
            await self._vectorize_resident_chat()

    async def switch_chat(self) -> None:
        """
        Persist the resident collection and load the now active chat.

        Waits for a running bulk vectorization of the resident chat to finish.
        """
        async with self._collection_lock:
            if self.current_chat_id and self.vectors:
                await self.save()

            await self._load_current_chat()

    async def vectorize_all_tables(self) -> int:
        """
        Embed every row of every enabled table and persist once at the end.

        A call made while another one is running returns immediately.
        A failing table is logged and skipped.

        :returns: number of rows vectorized
        """
        return await self._vectorize_all(clear=False)

    async def _vectorize_all(self, clear: bool) -> int:
        if self.is_vectorizing:
            logger.info("Vectorization already in progress, skipping")
            return 0

        self._require_client()
        async with self._collection_lock:
            if clear:
                self.vectors = []
            return await self._vectorize_resident_chat()

    async def _vectorize_resident_chat(self) -> int:
        """Vectorize all tables into the resident collection, lock held by the caller."""
        self.is_vectorizing = True
        try:
            sheets = [sheet for sheet in self.tables.get_chat_sheets() if sheet.enabled]
            logger.info(f"Vectorizing {len(sheets)} enabled tables")

            total = 0
            for sheet in sheets:
                try:
                    total += await self.vectorize_table(sheet, persist=False)
                except Exception as e:
                    logger.exception(f"Failed to vectorize table {sheet.name}: {e}")

            await self.save()
            logger.info(f"Vectorization finished, {total} rows embedded")
            return total
        finally:
            self.is_vectorizing = False

    async def vectorize_table(self, sheet: TableSource, persist: bool = True) -> int:
        """
        Embed all rows of one table as a single batch.

        Records of the table are only written once every row embedded, so
        a failure leaves the table's previous records untouched.

        :param sheet: table to vectorize
        :param persist: save the collection afterwards
        :returns: number of rows vectorized
        """
        client = self._require_client()
        headers = list(sheet.get_header() or [])
        rows = list(sheet.get_body() or [])

        if not headers or not rows:
            logger.info(f"Table {sheet.name} is empty, skipping")
            return 0

        logger.debug(f"Vectorizing table {sheet.name} ({len(rows)} rows)")
        texts = [
            build_row_text(sheet.name, headers, row, row_index)
            for row_index, row in enumerate(rows)
        ]
        vectors = await client.embed_batch(texts)

        for row_index, row in enumerate(rows):
            self.add_vector(
                row_vector_id(sheet.uid, row_index),
                vectors[row_index],
                self._row_metadata(sheet, headers, row, row_index),
            )

        if persist:
            await self.save()

        return len(rows)

    async def update_row(self, sheet: TableSource, row_index: int) -> bool:
        """
        Re-embed one row and persist the collection.

        Failures are logged, never raised.

        :returns: True if the row vector was updated
        """
        try:
            client = self._require_client()
            headers = list(sheet.get_header() or [])
            rows = sheet.get_body() or []

            if row_index < 0 or row_index >= len(rows):
                logger.warning(f"Row {row_index} of table {sheet.name} does not exist")
                return False

            row = rows[row_index]
            vector_id = row_vector_id(sheet.uid, row_index)
            chat_id = self.current_chat_id
            vector = await client.embed(build_row_text(sheet.name, headers, row, row_index))
            if self.current_chat_id != chat_id:
                logger.warning(f"Chat switched while embedding {vector_id}, update dropped")
                return False

            self.add_vector(
                vector_id, vector, self._row_metadata(sheet, headers, row, row_index)
            )

            await self.save()
            logger.debug(f"Vector updated: {vector_id}")
            return True
        except Exception as e:
            logger.exception(f"Failed to update row vector: {e}")
            return False

    async def handle_row_edit(self, sheet: TableSource, row_index: int) -> bool:
        """Table engine edit hook, re-embeds the row if vectorize_on_edit is set."""
        if not self.vectorize_on_edit or not self.is_initialized:
            return False
        return await self.update_row(sheet, row_index)

    @staticmethod
    def _row_metadata(
        sheet: TableSource,
        headers: List[str],
        row,
        row_index: int,
    ) -> RowMetadata:
        return RowMetadata(
            table_uid=sheet.uid,
            table_name=sheet.name,
            row_index=row_index,
            headers=headers,
            values=list(row),
            timestamp=utcnow(),
        )

    def add_vector(self, vector_id: str, vector: List[float], metadata: RowMetadata) -> None:
        """Insert a record, or replace the record with the same id in place."""
        record = VectorRecord(id=vector_id, vector=list(vector), metadata=metadata)

        for i, existing in enumerate(self.vectors):
            if existing.id == vector_id:
                self.vectors[i] = record
                return

        self.vectors.append(record)

    def delete_vector(self, vector_id: str) -> bool:
        """
        Remove a record by id.

        :returns: True if a record was removed
        """
        remaining = [record for record in self.vectors if record.id != vector_id]
        removed = len(remaining) != len(self.vectors)
        self.vectors = remaining
        return removed

    async def search(
        self,
        query: str,
        top_k: int = 10,
        filter: Optional[MetadataFilter] = None,  # noqa: A002
        min_score: Optional[float] = None,
    ) -> List[SearchResult]:
        """
        Rows most similar to ``query``.

        :param query: search text
        :param top_k: maximum number of results
        :param filter: predicate over record metadata narrowing the candidates
        :param min_score: drop results scoring below this similarity
        :returns: results by descending score, ties in collection order
        :raises NotInitializedError: if no embedding client is configured
        :raises DimensionMismatchError: if stored vectors differ in dimension
            from the query embedding
        """
        client = self._require_client()

        if not self.vectors:
            logger.debug("Vector collection is empty, nothing to search")
            return []

        query_vector = await client.embed(query)

        candidates = [
            (record.vector, record)
            for record in list(self.vectors)
            if filter is None or filter(record.metadata)
        ]
        ranked = rank_by_similarity(query_vector, candidates, top_k=len(candidates))
        if min_score is not None:
            ranked = [candidate for candidate in ranked if candidate.score >= min_score]

        return [
            SearchResult(
                id=candidate.payload.id,
                score=candidate.score,
                metadata=candidate.payload.metadata,
            )
            for candidate in ranked[: max(top_k, 0)]
        ]

    async def rebuild_all(self) -> int:
        """Drop every resident vector and vectorize all tables from scratch."""
        logger.info("Rebuilding all vectors")
        return await self._vectorize_all(clear=True)

    def get_stats(self) -> VectorStats:
        """Counts per table and store status."""
        table_groups = Counter(record.metadata.table_name for record in self.vectors)

        return VectorStats(
            total_vectors=len(self.vectors),
            table_groups=dict(table_groups),
            chat_id=self.current_chat_id,
            is_initialized=self.is_initialized,
            is_vectorizing=self.is_vectorizing,
        )

    async def clear_current_chat(self) -> None:
        """Forget all vectors of the active conversation, durably."""
        self.vectors = []
        await self.save()
        logger.info(f"Cleared vectors of chat {self.current_chat_id}")

    async def save(self) -> None:
        """Write the resident collection to durable storage."""
        if not self.current_chat_id:
            logger.warning("Cannot save vectors: no active chat")
            return

        collection = VectorCollection(
            chat_id=self.current_chat_id,
            vectors=list(self.vectors),
            last_update=utcnow(),
        )
        await self.storage.put(collection)
        logger.info(f"Saved {len(self.vectors)} vectors for chat {self.current_chat_id}")

    async def close(self) -> None:
        """Flush the resident collection and release storage and network resources."""
        if self.is_initialized and self.current_chat_id:
            await self.save()

        await self.storage.close()
        if self.embedding_client is not None:
            await self.embedding_client.close()

        self.embedding_client = None
        self.state = StoreState.UNINITIALIZED
        logger.info("Vector store closed")
