"""
Repository layer - Data access abstractions.

Callers depend on the interfaces; the factory decides whether mock data, the
booking API, or a combination of both serves them.
"""

from .factory import RepositoryFactory
from .interfaces import BaseRepository, ClientRepository, ServiceRepository

__all__ = ["BaseRepository", "ClientRepository", "RepositoryFactory", "ServiceRepository"]
