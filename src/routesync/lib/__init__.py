"""Shared helpers: geometry, paths and logging."""
