"""Assessment delivery and integrity engine."""
from engine.delivery import DeliverySelector, select_delivery
from engine.errors import (
    AssessmentError,
    AttemptLimitReached,
    CapabilityDenied,
    InvalidAttempt,
    InvalidTestDefinition,
    InvalidTransition,
    NoQuestionsAvailable,
    PersistenceError,
    SessionConflict,
    TestNotFound,
    TestNotOpen,
)
from engine.integrity import IntegrityMonitor, Posture
from engine.models import (
    Attempt,
    AttemptStatus,
    DeliveredQuestion,
    Question,
    TestDefinition,
    TestStatus,
)
from engine.scoring import ScoreResult, score
from engine.session import SessionController, SessionState, SessionView

__all__ = [
    "DeliverySelector",
    "select_delivery",
    "AssessmentError",
    "AttemptLimitReached",
    "CapabilityDenied",
    "InvalidAttempt",
    "InvalidTestDefinition",
    "InvalidTransition",
    "NoQuestionsAvailable",
    "PersistenceError",
    "SessionConflict",
    "TestNotFound",
    "TestNotOpen",
    "IntegrityMonitor",
    "Posture",
    "Attempt",
    "AttemptStatus",
    "DeliveredQuestion",
    "Question",
    "TestDefinition",
    "TestStatus",
    "ScoreResult",
    "score",
    "SessionController",
    "SessionState",
    "SessionView",
]
