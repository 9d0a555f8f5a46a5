"""HTTP client for an OpenAI-compatible inference gateway (chat completions + model list)."""

from __future__ import annotations

import json
import logging
from typing import Any, Protocol
from urllib import error, request

logger = logging.getLogger(__name__)


class GatewayRequestError(RuntimeError):
    """Transport-level or HTTP-level failure talking to the gateway."""

    def __init__(self, message: str, *, status: int | None = None) -> None:
        super().__init__(message)
        self.status = status


class ModelCallError(RuntimeError):
    """One model attempt failed; the caller may move on to the next candidate."""

    def __init__(self, model: str, reason: str, *, status: int | None = None) -> None:
        super().__init__(f"model={model} status={status} reason={reason}")
        self.model = model
        self.reason = reason
        self.status = status


class InferenceGateway(Protocol):
    def chat_completion(
        self,
        *,
        model: str,
        prompt: str,
        temperature: float,
        max_tokens: int,
    ) -> str: ...

    def list_models(self) -> list[str]: ...


class HTTPInferenceGateway:
    """Synchronous gateway client built on urllib."""

    def __init__(self, *, api_key: str, base_url: str, timeout_s: float) -> None:
        if not api_key:
            raise RuntimeError("GROQ_API_KEY is missing")
        self.api_key = api_key
        self.base_url = base_url.rstrip("/")
        self.timeout_s = timeout_s

    def chat_completion(
        self,
        *,
        model: str,
        prompt: str,
        temperature: float,
        max_tokens: int,
    ) -> str:
        body = {
            "model": model,
            "messages": [{"role": "user", "content": prompt}],
            "temperature": temperature,
            "max_tokens": max_tokens,
        }
        try:
            response_json = self._request("POST", "/chat/completions", body=body)
        except GatewayRequestError as exc:
            raise ModelCallError(model, str(exc), status=exc.status) from exc
        content = _extract_message_content(response_json)
        if not content:
            raise ModelCallError(model, "response missing message content", status=200)
        return content

    def list_models(self) -> list[str]:
        response_json = self._request("GET", "/models")
        rows = response_json.get("data") if isinstance(response_json, dict) else response_json
        if not isinstance(rows, list):
            raise GatewayRequestError("Model listing returned an unexpected shape", status=200)
        models: list[str] = []
        for row in rows:
            if not isinstance(row, dict):
                continue
            model_id = row.get("id") or row.get("model") or row.get("name")
            if isinstance(model_id, str) and model_id:
                models.append(model_id)
        return models

    def _request(self, method: str, path: str, *, body: dict[str, Any] | None = None) -> Any:
        url = f"{self.base_url}{path}"
        logger.debug(
            "inference event=request method=%s url=%s model=%s timeout_s=%s",
            method,
            url,
            (body or {}).get("model"),
            self.timeout_s,
        )
        req = request.Request(
            url=url,
            data=json.dumps(body).encode("utf-8") if body is not None else None,
            method=method,
            headers={
                "Authorization": f"Bearer {self.api_key}",
                "Content-Type": "application/json",
            },
        )
        try:
            with request.urlopen(req, timeout=self.timeout_s) as response:
                raw = response.read().decode("utf-8")
        except error.HTTPError as exc:
            message = exc.read().decode("utf-8", errors="replace")
            raise GatewayRequestError(
                f"Inference request failed with status {exc.code}: {message[:400]}",
                status=exc.code,
            ) from exc
        except error.URLError as exc:
            raise GatewayRequestError(f"Inference request failed: {exc.reason}") from exc
        except TimeoutError as exc:
            raise GatewayRequestError(
                f"Inference request timed out after {self.timeout_s:.1f}s"
            ) from exc

        try:
            return json.loads(raw)
        except json.JSONDecodeError as exc:
            raise GatewayRequestError(
                f"Inference gateway returned non-JSON body: {raw[:400]}", status=200
            ) from exc


def _extract_message_content(response_json: Any) -> str:
    if not isinstance(response_json, dict):
        return ""
    choices = response_json.get("choices", [])
    if not isinstance(choices, list) or not choices or not isinstance(choices[0], dict):
        return ""

    first = choices[0]
    message = first.get("message", {})
    content = message.get("content") if isinstance(message, dict) else None
    if content is None:
        content = first.get("text")

    if isinstance(content, str):
        return content.strip()
    if isinstance(content, list):
        parts: list[str] = []
        for item in content:
            if isinstance(item, dict) and isinstance(item.get("text"), str):
                parts.append(item["text"])
        return "".join(parts).strip()
    return ""
