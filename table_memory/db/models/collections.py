from datetime import datetime

from sqlalchemy import JSON, Column, DateTime, String

from table_memory.db.base import Base


class VectorCollectionModel(Base):
    """Persisted vector collection of one conversation."""

    __tablename__ = "vector_collections"

    chat_id = Column(String, primary_key=True)
    # Serialized VectorRecord list, camelCase keys
    vectors = Column(JSON, nullable=False, default=list)
    last_update = Column(DateTime(timezone=True), default=datetime.utcnow, index=True)
    version = Column(String, nullable=False, default="1.0")
