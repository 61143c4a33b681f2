"""Semantic table memory API."""

from table_memory.web.api.vectors.views import router

__all__ = ["router"]
