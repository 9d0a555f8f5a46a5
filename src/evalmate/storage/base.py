"""Storage interface for tasks, user profiles, and payments."""

from __future__ import annotations

from datetime import datetime
from typing import Any, Protocol

from evalmate.storage.models import EvaluationStatus, PaymentRecord, TaskRecord, UserProfile


class EvaluationStore(Protocol):
    def migrate(self) -> None: ...

    def create_task(
        self,
        *,
        user_id: str,
        title: str,
        description: str,
        code_content: str | None,
        language: str | None,
    ) -> TaskRecord: ...

    def get_task(self, task_id: str, *, user_id: str | None = None) -> TaskRecord | None: ...

    def list_tasks(self, user_id: str) -> list[TaskRecord]: ...

    def delete_task(self, task_id: str, *, user_id: str) -> bool: ...

    def begin_evaluation(self, task_id: str, *, user_id: str) -> TaskRecord | None:
        """Move an owned task to ``processing`` unless it is already there.

        Returns None when the task is missing, not owned, or already processing.
        """
        ...

    def update_task(
        self,
        task_id: str,
        *,
        status: EvaluationStatus,
        evaluation: dict[str, Any] | None,
    ) -> TaskRecord: ...

    def unlock_task_report(self, task_id: str, *, user_id: str) -> TaskRecord | None: ...

    def get_or_create_profile(self, user_id: str) -> UserProfile: ...

    def update_profile(
        self,
        user_id: str,
        *,
        full_name: str | None,
        avatar_url: str | None,
    ) -> UserProfile: ...

    def grant_premium(self, user_id: str, *, since: datetime) -> UserProfile: ...

    def insert_payment(
        self,
        *,
        user_id: str,
        task_id: str | None,
        gateway_payment_id: str,
        amount: int,
        currency: str,
    ) -> PaymentRecord:
        """Record a captured payment; raises DuplicatePaymentError on a repeated id."""
        ...

    def get_payment(self, gateway_payment_id: str) -> PaymentRecord | None: ...

    def list_payments(self, user_id: str) -> list[PaymentRecord]: ...
