"""Web layer of table memory."""
