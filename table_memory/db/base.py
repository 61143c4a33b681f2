from sqlalchemy.orm import DeclarativeBase

from table_memory.db.meta import meta


class Base(DeclarativeBase):
    """Base for all models."""

    metadata = meta
