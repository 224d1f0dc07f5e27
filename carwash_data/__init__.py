"""Data-access layer for the car-wash booking application."""

__version__ = "1.0.0"
