"""Request and response bodies for the HTTP API."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field, field_validator

from evalmate.storage.models import EvaluationStatus, TaskRecord


class ApiModel(BaseModel):
    """Accepts both snake_case and the browser client's camelCase keys."""

    model_config = ConfigDict(populate_by_name=True)


class CreateTaskRequest(ApiModel):
    model_config = ConfigDict(populate_by_name=True, str_strip_whitespace=True)

    title: str = Field(min_length=1)
    description: str = Field(min_length=1)
    code_content: str | None = Field(default=None, alias="codeContent")
    language: str | None = None

    @field_validator("code_content", "language")
    @classmethod
    def blank_as_none(cls, value: str | None) -> str | None:
        return value or None

    def payload_chars(self) -> int:
        return len(self.title) + len(self.description) + len(self.code_content or "")


class EvaluationAccepted(BaseModel):
    task_id: str
    evaluation_status: EvaluationStatus


class UpdateProfileRequest(ApiModel):
    full_name: str | None = Field(default=None, alias="fullName")
    avatar_url: str | None = Field(default=None, alias="avatarUrl")


class CreateOrderRequest(ApiModel):
    task_id: str = Field(min_length=1, alias="taskId")
    amount: int | None = Field(default=None, ge=1)


class OrderResponse(BaseModel):
    id: str
    amount: int
    currency: str
    receipt: str
    key_id: str


class VerifyPaymentRequest(ApiModel):
    razorpay_payment_id: str = Field(min_length=1)
    razorpay_order_id: str = Field(min_length=1)
    razorpay_signature: str = Field(min_length=1)
    task_id: str = Field(min_length=1, alias="taskId")


class VerifyPaymentResponse(BaseModel):
    success: bool
    unlocked: bool
    message: str


def task_view(record: TaskRecord, *, premium_access: bool) -> TaskRecord:
    """Strip premium insights unless the caller may see them."""
    evaluation = record.ai_evaluation
    if premium_access or not evaluation or "premiumInsights" not in evaluation:
        return record
    visible = {key: value for key, value in evaluation.items() if key != "premiumInsights"}
    return record.model_copy(update={"ai_evaluation": visible})
