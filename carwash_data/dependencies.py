"""
Shared dependencies for the application.

Holds the process-wide RepositoryFactory used by callers that cannot have one
injected explicitly.
"""

from typing import TYPE_CHECKING, Optional

if TYPE_CHECKING:
    from .repositories.factory import RepositoryFactory

# Global factory instance (set at application start or built on first use)
_repository_factory: Optional["RepositoryFactory"] = None


def set_repository_factory(factory: Optional["RepositoryFactory"]) -> None:
    """
    Set the global repository factory.

    Called during startup; tests pass None to reset it.
    """
    global _repository_factory
    _repository_factory = factory


def get_repository_factory() -> "RepositoryFactory":
    """
    Get the global repository factory, building it from settings on first use.
    """
    global _repository_factory
    if _repository_factory is None:
        from .repositories.factory import RepositoryFactory

        _repository_factory = RepositoryFactory()
    return _repository_factory
