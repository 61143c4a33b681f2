"""Database layer of table memory."""
