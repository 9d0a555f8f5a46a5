"""Storage models shared by API and persistence backends."""

from datetime import datetime
from typing import Any, Literal

from pydantic import BaseModel

# pending -> processing -> completed | failed
EvaluationStatus = Literal["pending", "processing", "completed", "failed"]
PaymentStatus = Literal["pending", "completed", "failed", "refunded"]


class TaskRecord(BaseModel):
    """Persisted coding-task submission and its latest evaluation."""

    task_id: str
    user_id: str
    title: str
    description: str
    code_content: str | None = None
    language: str | None = None
    evaluation_status: EvaluationStatus = "pending"
    ai_evaluation: dict[str, Any] | None = None
    report_unlocked: bool = False
    created_at: datetime
    updated_at: datetime


class UserProfile(BaseModel):
    """Per-account profile, one row per authenticated user."""

    user_id: str
    full_name: str | None = None
    avatar_url: str | None = None
    credits_balance: int = 0
    premium_user: bool = False
    premium_since: datetime | None = None
    created_at: datetime
    updated_at: datetime


class PaymentRecord(BaseModel):
    """Captured gateway payment. Rows are written once and never edited."""

    payment_id: str
    user_id: str
    task_id: str | None = None
    gateway_payment_id: str
    amount: int
    currency: str
    status: PaymentStatus = "completed"
    created_at: datetime
    updated_at: datetime
