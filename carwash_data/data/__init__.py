"""Bundled mock data."""

from .mock_data import MockDataStore

__all__ = ["MockDataStore"]
