"""Embedding pipeline core: extraction, batching, scheduling and search."""
