"""Lens dashboard over an issue dependency graph."""
