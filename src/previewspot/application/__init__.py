"""Application layer: caches and services."""
