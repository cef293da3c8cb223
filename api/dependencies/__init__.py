"""FastAPI dependencies."""
from api.dependencies.sessions import get_session_registry, get_test_repository

__all__ = ["get_session_registry", "get_test_repository"]
