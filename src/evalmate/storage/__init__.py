"""Storage backends and models."""

from evalmate.storage.base import EvaluationStore
from evalmate.storage.memory import InMemoryEvaluationStore
from evalmate.storage.models import (
    EvaluationStatus,
    PaymentRecord,
    PaymentStatus,
    TaskRecord,
    UserProfile,
)
from evalmate.storage.postgres import PostgresEvaluationStore

__all__ = [
    "EvaluationStatus",
    "EvaluationStore",
    "InMemoryEvaluationStore",
    "PaymentRecord",
    "PaymentStatus",
    "PostgresEvaluationStore",
    "TaskRecord",
    "UserProfile",
]
