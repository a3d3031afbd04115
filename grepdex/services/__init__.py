"""Indexing, discovery, persistence and scanning services."""
