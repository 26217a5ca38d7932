"""Indexarr: declarative indexer definitions and multi-source search."""

__version__ = "0.1.0"
