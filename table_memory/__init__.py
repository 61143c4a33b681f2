"""Semantic memory for chat tables."""
