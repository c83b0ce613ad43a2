"""Telegram real-estate channel ingestion and field extraction."""

__version__ = "0.1.0"
