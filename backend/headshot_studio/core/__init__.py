"""Core infrastructure: settings, database, logging."""
