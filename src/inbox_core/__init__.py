"""Shared infrastructure: settings, database sessions, logging."""
