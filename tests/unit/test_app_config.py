import io
import json
from urllib import error

import pytest
from conftest import FakeInferenceGateway, StaticAuthProvider
from fastapi.testclient import TestClient

import evalmate.api.auth as auth_module
from evalmate.api.auth import SupabaseAuthProvider, bearer_token
from evalmate.api.main import create_app
from evalmate.config.settings import Settings
from evalmate.storage.memory import InMemoryEvaluationStore


def test_missing_database_url_fails_at_startup(monkeypatch) -> None:
    monkeypatch.delenv("DATABASE_URL", raising=False)
    app = create_app(
        settings_override=Settings(database_url=""),
        inference_gateway=FakeInferenceGateway(),
        auth_provider=StaticAuthProvider(),
    )

    with pytest.raises(RuntimeError, match="Missing database URL"):
        with TestClient(app):
            pass


def test_missing_auth_url_fails_at_startup(monkeypatch) -> None:
    monkeypatch.delenv("SUPABASE_URL", raising=False)

    with pytest.raises(RuntimeError, match="Missing auth URL"):
        create_app(
            storage=InMemoryEvaluationStore(),
            settings_override=Settings(auth_url=""),
            inference_gateway=FakeInferenceGateway(),
        )


def test_payment_routes_report_unconfigured_gateway(monkeypatch, auth) -> None:
    monkeypatch.delenv("RAZORPAY_KEY_ID", raising=False)
    app = create_app(
        storage=InMemoryEvaluationStore(),
        settings_override=Settings(payment_key_id=""),
        inference_gateway=FakeInferenceGateway(),
        auth_provider=StaticAuthProvider(),
    )
    client = TestClient(app)

    response = client.post("/payments/orders", json={"task_id": "t"}, headers=auth())

    assert response.status_code == 502
    assert response.json() == {"detail": "Payment gateway is not configured"}


def test_settings_fall_back_to_well_known_env_names(monkeypatch) -> None:
    monkeypatch.setenv("DATABASE_URL", "postgresql://db/evalmate")
    monkeypatch.setenv("GROQ_API_KEY", "gsk_test")
    monkeypatch.setenv("RAZORPAY_WEBHOOK_SECRET", "whsec")

    settings = Settings(database_url="", llm_api_key="", payment_webhook_secret="")

    assert settings.resolved_database_url() == "postgresql://db/evalmate"
    assert settings.resolved_llm_api_key() == "gsk_test"
    assert settings.resolved_payment_webhook_secret() == "whsec"


def test_prefixed_settings_win_over_fallbacks(monkeypatch) -> None:
    monkeypatch.setenv("EVALMATE_DATABASE_URL", "postgresql://primary/db")
    monkeypatch.setenv("DATABASE_URL", "postgresql://fallback/db")
    monkeypatch.setenv("EVALMATE_MAX_CODE_CHARS", "2000")

    settings = Settings()

    assert settings.resolved_database_url() == "postgresql://primary/db"
    assert settings.max_code_chars == 2000
    assert settings.llm_preferred_models[0] == "llama-3.1-8b-instant"
    assert "app_env" not in Settings.model_fields


def test_bearer_token_parsing() -> None:
    assert bearer_token("Bearer abc") == "abc"
    assert bearer_token("bearer  abc ") == "abc"
    assert bearer_token("Basic abc") is None
    assert bearer_token("Bearer ") is None
    assert bearer_token(None) is None


class _FakeResponse:
    def __init__(self, body: dict) -> None:
        self._body = json.dumps(body).encode("utf-8")

    def __enter__(self) -> "_FakeResponse":
        return self

    def __exit__(self, *exc_info) -> None:
        return None

    def read(self) -> bytes:
        return self._body


def test_supabase_provider_resolves_user(monkeypatch) -> None:
    captured = {}

    def fake_urlopen(req, timeout):
        captured["url"] = req.full_url
        captured["auth"] = req.get_header("Authorization")
        captured["apikey"] = req.get_header("Apikey")
        return _FakeResponse({"id": "user-123", "email": "a@example.com"})

    monkeypatch.setattr(auth_module.request, "urlopen", fake_urlopen)
    provider = SupabaseAuthProvider(auth_url="https://auth.test/", api_key="anon")

    assert provider.resolve_user("tok") == "user-123"
    assert captured == {
        "url": "https://auth.test/auth/v1/user",
        "auth": "Bearer tok",
        "apikey": "anon",
    }


def test_supabase_provider_rejects_invalid_token(monkeypatch) -> None:
    def fake_urlopen(req, timeout):
        raise error.HTTPError(req.full_url, 401, "Unauthorized", {}, io.BytesIO(b"{}"))

    monkeypatch.setattr(auth_module.request, "urlopen", fake_urlopen)
    provider = SupabaseAuthProvider(auth_url="https://auth.test", api_key="anon")

    assert provider.resolve_user("expired") is None
