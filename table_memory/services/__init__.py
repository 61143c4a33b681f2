"""Services package for table_memory."""
