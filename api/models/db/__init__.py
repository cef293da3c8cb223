"""Database models."""
from api.models.db.attempt import Attempt, AttemptAnswer

__all__ = [
    "Attempt",
    "AttemptAnswer",
]
