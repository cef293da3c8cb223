"""API route modules."""
from api.routes import attempts, sessions, tests

__all__ = ["attempts", "sessions", "tests"]
