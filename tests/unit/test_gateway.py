import io
import json
from urllib import error

import pytest

import evalmate.llm.gateway as gateway_module
from evalmate.llm.gateway import GatewayRequestError, HTTPInferenceGateway, ModelCallError


class _FakeResponse:
    def __init__(self, body: str) -> None:
        self._body = body.encode("utf-8")

    def __enter__(self) -> "_FakeResponse":
        return self

    def __exit__(self, *exc_info) -> None:
        return None

    def read(self) -> bytes:
        return self._body


def _gateway() -> HTTPInferenceGateway:
    return HTTPInferenceGateway(api_key="test-key", base_url="https://llm.test/v1/", timeout_s=3.0)


def test_missing_api_key_is_a_startup_error() -> None:
    with pytest.raises(RuntimeError, match="GROQ_API_KEY"):
        HTTPInferenceGateway(api_key="", base_url="https://llm.test/v1", timeout_s=3.0)


def test_chat_completion_posts_openai_shape(monkeypatch) -> None:
    captured = {}

    def fake_urlopen(req, timeout):
        captured["url"] = req.full_url
        captured["method"] = req.get_method()
        captured["auth"] = req.get_header("Authorization")
        captured["body"] = json.loads(req.data.decode("utf-8"))
        captured["timeout"] = timeout
        return _FakeResponse(json.dumps({"choices": [{"message": {"content": "  {\"a\": 1}  "}}]}))

    monkeypatch.setattr(gateway_module.request, "urlopen", fake_urlopen)

    content = _gateway().chat_completion(
        model="llama-3.1-8b-instant", prompt="hello", temperature=0.3, max_tokens=2000
    )

    assert content == '{"a": 1}'
    assert captured["url"] == "https://llm.test/v1/chat/completions"
    assert captured["method"] == "POST"
    assert captured["auth"] == "Bearer test-key"
    assert captured["timeout"] == 3.0
    assert captured["body"] == {
        "model": "llama-3.1-8b-instant",
        "messages": [{"role": "user", "content": "hello"}],
        "temperature": 0.3,
        "max_tokens": 2000,
    }


def test_http_error_becomes_model_call_error(monkeypatch) -> None:
    def fake_urlopen(req, timeout):
        raise error.HTTPError(
            req.full_url, 400, "Bad Request", {}, io.BytesIO(b'{"error": "model_decommissioned"}')
        )

    monkeypatch.setattr(gateway_module.request, "urlopen", fake_urlopen)

    with pytest.raises(ModelCallError) as exc_info:
        _gateway().chat_completion(model="old-model", prompt="p", temperature=0.3, max_tokens=10)

    assert exc_info.value.status == 400
    assert exc_info.value.model == "old-model"
    assert "model_decommissioned" in exc_info.value.reason


def test_non_json_200_is_a_model_failure(monkeypatch) -> None:
    monkeypatch.setattr(
        gateway_module.request, "urlopen", lambda req, timeout: _FakeResponse("<html>oops</html>")
    )

    with pytest.raises(ModelCallError) as exc_info:
        _gateway().chat_completion(model="m", prompt="p", temperature=0.3, max_tokens=10)

    assert exc_info.value.status == 200


def test_missing_content_is_a_model_failure(monkeypatch) -> None:
    monkeypatch.setattr(
        gateway_module.request,
        "urlopen",
        lambda req, timeout: _FakeResponse(json.dumps({"choices": []})),
    )

    with pytest.raises(ModelCallError, match="missing message content"):
        _gateway().chat_completion(model="m", prompt="p", temperature=0.3, max_tokens=10)


def test_legacy_text_and_content_parts_are_supported(monkeypatch) -> None:
    bodies = iter(
        [
            {"choices": [{"text": "legacy"}]},
            {"choices": [{"message": {"content": [{"text": "part one "}, {"text": "two"}]}}]},
        ]
    )
    monkeypatch.setattr(
        gateway_module.request,
        "urlopen",
        lambda req, timeout: _FakeResponse(json.dumps(next(bodies))),
    )
    gateway = _gateway()

    assert gateway.chat_completion(model="m", prompt="p", temperature=0.3, max_tokens=1) == "legacy"
    assert (
        gateway.chat_completion(model="m", prompt="p", temperature=0.3, max_tokens=1)
        == "part one two"
    )


def test_list_models_reads_ids(monkeypatch) -> None:
    body = {"data": [{"id": "llama-3.1-8b-instant"}, {"model": "gemma2-9b-it"}, {"object": "x"}]}
    monkeypatch.setattr(
        gateway_module.request, "urlopen", lambda req, timeout: _FakeResponse(json.dumps(body))
    )

    assert _gateway().list_models() == ["llama-3.1-8b-instant", "gemma2-9b-it"]


def test_list_models_transport_error(monkeypatch) -> None:
    def fake_urlopen(req, timeout):
        raise error.URLError("connection refused")

    monkeypatch.setattr(gateway_module.request, "urlopen", fake_urlopen)

    with pytest.raises(GatewayRequestError, match="connection refused"):
        _gateway().list_models()
