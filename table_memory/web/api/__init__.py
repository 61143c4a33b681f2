"""API package for table_memory."""

from table_memory.web.api import vectors

__all__ = ["vectors"]
