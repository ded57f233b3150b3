"""Furlong - race chart ingestion and horse identity service."""

__version__ = "0.1.0"
