"""Tests for table_memory."""
