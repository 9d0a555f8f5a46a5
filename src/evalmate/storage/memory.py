"""In-memory storage backend for tests and local runs without a database."""

from __future__ import annotations

import threading
from datetime import UTC, datetime
from typing import Any
from uuid import uuid4

from evalmate.errors import DuplicatePaymentError
from evalmate.storage.models import EvaluationStatus, PaymentRecord, TaskRecord, UserProfile


class InMemoryEvaluationStore:
    """Dict-backed implementation mirroring PostgresEvaluationStore semantics."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._tasks: dict[str, TaskRecord] = {}
        self._profiles: dict[str, UserProfile] = {}
        self._payments: dict[str, PaymentRecord] = {}

    def migrate(self) -> None:
        return None

    def create_task(
        self,
        *,
        user_id: str,
        title: str,
        description: str,
        code_content: str | None,
        language: str | None,
    ) -> TaskRecord:
        now = datetime.now(UTC)
        record = TaskRecord(
            task_id=str(uuid4()),
            user_id=user_id,
            title=title,
            description=description,
            code_content=code_content,
            language=language,
            evaluation_status="pending",
            ai_evaluation=None,
            report_unlocked=False,
            created_at=now,
            updated_at=now,
        )
        with self._lock:
            self._tasks[record.task_id] = record
        return record.model_copy(deep=True)

    def get_task(self, task_id: str, *, user_id: str | None = None) -> TaskRecord | None:
        with self._lock:
            record = self._tasks.get(task_id)
        if record is None or (user_id is not None and record.user_id != user_id):
            return None
        return record.model_copy(deep=True)

    def list_tasks(self, user_id: str) -> list[TaskRecord]:
        with self._lock:
            owned = [task for task in self._tasks.values() if task.user_id == user_id]
        owned.sort(key=lambda task: task.created_at, reverse=True)
        return [task.model_copy(deep=True) for task in owned]

    def delete_task(self, task_id: str, *, user_id: str) -> bool:
        with self._lock:
            record = self._tasks.get(task_id)
            if record is None or record.user_id != user_id:
                return False
            del self._tasks[task_id]
        return True

    def begin_evaluation(self, task_id: str, *, user_id: str) -> TaskRecord | None:
        with self._lock:
            current = self._tasks.get(task_id)
            if current is None or current.user_id != user_id:
                return None
            if current.evaluation_status == "processing":
                return None
            updated = current.model_copy(
                update={"evaluation_status": "processing", "updated_at": datetime.now(UTC)}
            )
            self._tasks[task_id] = updated
        return updated.model_copy(deep=True)

    def update_task(
        self,
        task_id: str,
        *,
        status: EvaluationStatus,
        evaluation: dict[str, Any] | None,
    ) -> TaskRecord:
        with self._lock:
            current = self._tasks.get(task_id)
            if current is None:
                raise KeyError(f"Task {task_id} does not exist")
            updated = current.model_copy(
                update={
                    "evaluation_status": status,
                    "ai_evaluation": evaluation,
                    "updated_at": datetime.now(UTC),
                }
            )
            self._tasks[task_id] = updated
        return updated.model_copy(deep=True)

    def unlock_task_report(self, task_id: str, *, user_id: str) -> TaskRecord | None:
        with self._lock:
            current = self._tasks.get(task_id)
            if current is None or current.user_id != user_id:
                return None
            updated = current.model_copy(
                update={"report_unlocked": True, "updated_at": datetime.now(UTC)}
            )
            self._tasks[task_id] = updated
        return updated.model_copy(deep=True)

    def get_or_create_profile(self, user_id: str) -> UserProfile:
        with self._lock:
            return self._ensure_profile(user_id).model_copy(deep=True)

    def update_profile(
        self,
        user_id: str,
        *,
        full_name: str | None,
        avatar_url: str | None,
    ) -> UserProfile:
        with self._lock:
            current = self._ensure_profile(user_id)
            changes: dict[str, Any] = {"updated_at": datetime.now(UTC)}
            if full_name is not None:
                changes["full_name"] = full_name
            if avatar_url is not None:
                changes["avatar_url"] = avatar_url
            updated = current.model_copy(update=changes)
            self._profiles[user_id] = updated
        return updated.model_copy(deep=True)

    def grant_premium(self, user_id: str, *, since: datetime) -> UserProfile:
        with self._lock:
            current = self._ensure_profile(user_id)
            updated = current.model_copy(
                update={
                    "premium_user": True,
                    "premium_since": current.premium_since or since,
                    "updated_at": datetime.now(UTC),
                }
            )
            self._profiles[user_id] = updated
        return updated.model_copy(deep=True)

    def insert_payment(
        self,
        *,
        user_id: str,
        task_id: str | None,
        gateway_payment_id: str,
        amount: int,
        currency: str,
    ) -> PaymentRecord:
        now = datetime.now(UTC)
        with self._lock:
            if gateway_payment_id in self._payments:
                raise DuplicatePaymentError(gateway_payment_id)
            record = PaymentRecord(
                payment_id=str(uuid4()),
                user_id=user_id,
                task_id=task_id,
                gateway_payment_id=gateway_payment_id,
                amount=amount,
                currency=currency,
                status="completed",
                created_at=now,
                updated_at=now,
            )
            self._payments[gateway_payment_id] = record
        return record.model_copy(deep=True)

    def get_payment(self, gateway_payment_id: str) -> PaymentRecord | None:
        with self._lock:
            record = self._payments.get(gateway_payment_id)
        return record.model_copy(deep=True) if record else None

    def list_payments(self, user_id: str) -> list[PaymentRecord]:
        with self._lock:
            owned = [item for item in self._payments.values() if item.user_id == user_id]
        owned.sort(key=lambda item: item.created_at, reverse=True)
        return [item.model_copy(deep=True) for item in owned]

    def _ensure_profile(self, user_id: str) -> UserProfile:
        profile = self._profiles.get(user_id)
        if profile is None:
            now = datetime.now(UTC)
            profile = UserProfile(user_id=user_id, created_at=now, updated_at=now)
            self._profiles[user_id] = profile
        return profile
