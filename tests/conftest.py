from __future__ import annotations

import json
from typing import Any, Callable

import pytest
from fastapi.testclient import TestClient

from evalmate.api.main import create_app
from evalmate.config.settings import Settings
from evalmate.errors import PaymentGatewayError
from evalmate.llm.gateway import ModelCallError
from evalmate.storage.memory import InMemoryEvaluationStore

TOKENS = {"token-alice": "user-alice", "token-bob": "user-bob"}


class FakeInferenceGateway:
    """Scripted gateway: replies are consumed in order, one per successful call."""

    def __init__(
        self,
        replies: list[str | Exception] | None = None,
        *,
        available: list[str] | Exception | None = None,
        failing_models: tuple[str, ...] = (),
    ) -> None:
        self.replies = list(replies or [])
        self.available = available if available is not None else []
        self.failing_models = set(failing_models)
        self.calls: list[dict[str, Any]] = []
        self.list_calls = 0

    def chat_completion(
        self, *, model: str, prompt: str, temperature: float, max_tokens: int
    ) -> str:
        self.calls.append({"model": model, "prompt": prompt, "max_tokens": max_tokens})
        if model in self.failing_models:
            raise ModelCallError(model, "model_decommissioned", status=400)
        if not self.replies:
            raise ModelCallError(model, "no scripted reply", status=503)
        reply = self.replies.pop(0)
        if isinstance(reply, Exception):
            raise reply
        return reply

    def list_models(self) -> list[str]:
        self.list_calls += 1
        if isinstance(self.available, Exception):
            raise self.available
        return list(self.available)


class FakePaymentGateway:
    key_id = "rzp_test_key"

    def __init__(self) -> None:
        self.orders: list[dict[str, Any]] = []
        self.payments: dict[str, dict[str, Any]] = {}
        self.fail_orders = False
        self.lookups: list[str] = []

    def create_order(
        self, *, amount: int, currency: str, receipt: str, notes: dict[str, str]
    ) -> dict[str, Any]:
        if self.fail_orders:
            raise PaymentGatewayError("Payment gateway request failed with status 500")
        order = {
            "id": f"order_{len(self.orders) + 1}",
            "amount": amount,
            "currency": currency,
            "receipt": receipt,
            "notes": dict(notes),
        }
        self.orders.append(order)
        return dict(order)

    def fetch_payment(self, payment_id: str) -> dict[str, Any]:
        self.lookups.append(payment_id)
        if payment_id not in self.payments:
            raise PaymentGatewayError("Payment gateway request failed with status 404")
        return dict(self.payments[payment_id])

    def add_payment(
        self,
        payment_id: str,
        *,
        order_id: str,
        status: str = "captured",
        amount: int = 99_900,
        notes: dict[str, str] | None = None,
    ) -> None:
        self.payments[payment_id] = {
            "id": payment_id,
            "order_id": order_id,
            "status": status,
            "amount": amount,
            "currency": "INR",
            "notes": dict(notes or {}),
        }


class StaticAuthProvider:
    def __init__(self, tokens: dict[str, str] | None = None) -> None:
        self.tokens = dict(tokens or TOKENS)

    def resolve_user(self, token: str) -> str | None:
        return self.tokens.get(token)


@pytest.fixture
def evaluation_payload() -> dict[str, Any]:
    return {
        "score": 8,
        "strengths": ["Clear structure", "Handles empty input"],
        "improvements": ["Add type hints"],
        "feedback": "Solid solution with minor gaps.",
        "suggestions": ["Write unit tests for edge cases"],
    }


@pytest.fixture
def insights_payload() -> dict[str, Any]:
    return {
        "architecture": "Single function, easy to follow.",
        "performance": "Linear time.",
        "security": "No external input handling.",
        "codeQuality": 78,
        "industryAverage": 72,
        "topPerformers": 91,
        "expertRecommendations": {"immediate": ["Validate input"], "future": ["Add caching"]},
        "learningPath": {"nextSkills": ["Testing"], "resources": ["pytest docs"]},
        "correctedCode": "def add(a, b):\n    return a + b\n",
    }


@pytest.fixture
def settings() -> Settings:
    return Settings(
        database_url="",
        payment_key_secret="checkout-secret",
        payment_webhook_secret="webhook-secret",
    )


@pytest.fixture
def store() -> InMemoryEvaluationStore:
    return InMemoryEvaluationStore()


@pytest.fixture
def inference(evaluation_payload, insights_payload) -> FakeInferenceGateway:
    return FakeInferenceGateway(
        [json.dumps(evaluation_payload), json.dumps(insights_payload)]
    )


@pytest.fixture
def payment_gateway() -> FakePaymentGateway:
    return FakePaymentGateway()


@pytest.fixture
def client(store, settings, inference, payment_gateway) -> TestClient:
    app = create_app(
        storage=store,
        settings_override=settings,
        inference_gateway=inference,
        payment_gateway=payment_gateway,
        auth_provider=StaticAuthProvider(),
    )
    return TestClient(app)


@pytest.fixture
def auth() -> Callable[[str], dict[str, str]]:
    def _headers(user: str = "alice") -> dict[str, str]:
        return {"Authorization": f"Bearer token-{user}"}

    return _headers

