"""Vector database services module."""

# Export types first to avoid circular imports
from table_memory.services.vector_db.types import (
    RowMetadata,
    SearchResult,
    VectorCollection,
    VectorRecord,
    VectorStats,
)
from table_memory.services.vector_db.storage import (
    CollectionStorage,
    InMemoryCollectionStorage,
    SqlCollectionStorage,
)
from table_memory.services.vector_db.sources import (
    ConversationContext,
    ConversationContextProvider,
    StaticTable,
    TableProvider,
    TableSource,
    build_row_text,
    format_cell,
    row_vector_id,
)
from table_memory.services.vector_db.store import StoreState, VectorCollectionStore

__all__ = [
    "CollectionStorage",
    "ConversationContext",
    "ConversationContextProvider",
    "InMemoryCollectionStorage",
    "RowMetadata",
    "SearchResult",
    "SqlCollectionStorage",
    "StaticTable",
    "StoreState",
    "TableProvider",
    "TableSource",
    "VectorCollection",
    "VectorCollectionStore",
    "VectorRecord",
    "VectorStats",
    "build_row_text",
    "format_cell",
    "row_vector_id",
]
