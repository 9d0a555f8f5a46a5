"""Payment gateway REST client (orders and payment lookup) over urllib."""

from __future__ import annotations

import base64
import json
import logging
from typing import Any, Protocol
from urllib import error, parse, request

from evalmate.errors import PaymentGatewayError

logger = logging.getLogger(__name__)


class PaymentGateway(Protocol):
    key_id: str

    def create_order(
        self,
        *,
        amount: int,
        currency: str,
        receipt: str,
        notes: dict[str, str],
    ) -> dict[str, Any]: ...

    def fetch_payment(self, payment_id: str) -> dict[str, Any]: ...


class HTTPPaymentGateway:
    def __init__(self, *, key_id: str, key_secret: str, base_url: str, timeout_s: float) -> None:
        if not key_id or not key_secret:
            raise RuntimeError("RAZORPAY_KEY_ID and RAZORPAY_KEY_SECRET are required")
        self.key_id = key_id
        self._key_secret = key_secret
        self.base_url = base_url.rstrip("/")
        self.timeout_s = timeout_s

    def create_order(
        self,
        *,
        amount: int,
        currency: str,
        receipt: str,
        notes: dict[str, str],
    ) -> dict[str, Any]:
        body = {"amount": amount, "currency": currency, "receipt": receipt, "notes": notes}
        return self._request("POST", "/orders", body=body)

    def fetch_payment(self, payment_id: str) -> dict[str, Any]:
        return self._request("GET", f"/payments/{parse.quote(payment_id, safe='')}")

    def _authorization(self) -> str:
        token = base64.b64encode(f"{self.key_id}:{self._key_secret}".encode("utf-8"))
        return "Basic " + token.decode("ascii")

    def _request(
        self, method: str, path: str, *, body: dict[str, Any] | None = None
    ) -> dict[str, Any]:
        url = f"{self.base_url}{path}"
        logger.debug("payment_gateway event=request method=%s url=%s", method, url)
        req = request.Request(
            url=url,
            data=json.dumps(body).encode("utf-8") if body is not None else None,
            method=method,
            headers={
                "Authorization": self._authorization(),
                "Content-Type": "application/json",
            },
        )
        try:
            with request.urlopen(req, timeout=self.timeout_s) as response:
                raw = response.read().decode("utf-8")
        except error.HTTPError as exc:
            message = exc.read().decode("utf-8", errors="replace")
            logger.warning(
                "payment_gateway event=http_error method=%s path=%s status=%s body=%s",
                method,
                path,
                exc.code,
                message[:400],
            )
            raise PaymentGatewayError(
                f"Payment gateway request failed with status {exc.code}"
            ) from exc
        except error.URLError as exc:
            raise PaymentGatewayError(f"Payment gateway request failed: {exc.reason}") from exc
        except TimeoutError as exc:
            raise PaymentGatewayError(
                f"Payment gateway request timed out after {self.timeout_s:.1f}s"
            ) from exc

        try:
            payload = json.loads(raw)
        except json.JSONDecodeError as exc:
            raise PaymentGatewayError("Payment gateway returned a non-JSON body") from exc
        if not isinstance(payload, dict):
            raise PaymentGatewayError("Payment gateway returned an unexpected body")
        return payload
