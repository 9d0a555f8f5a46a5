"""HMAC-SHA256 signature checks for checkout callbacks and webhooks."""

from __future__ import annotations

import hashlib
import hmac


def _hex_hmac(secret: str, message: bytes) -> str:
    return hmac.new(secret.encode("utf-8"), message, hashlib.sha256).hexdigest()


def checkout_signature(order_id: str, payment_id: str, *, key_secret: str) -> str:
    return _hex_hmac(key_secret, f"{order_id}|{payment_id}".encode("utf-8"))


def verify_checkout_signature(
    *, order_id: str, payment_id: str, signature: str, key_secret: str
) -> bool:
    if not signature or not key_secret:
        return False
    expected = checkout_signature(order_id, payment_id, key_secret=key_secret)
    return hmac.compare_digest(expected.encode("ascii"), signature.encode("utf-8", "surrogatepass"))


def webhook_signature(raw_body: bytes, *, webhook_secret: str) -> str:
    return _hex_hmac(webhook_secret, raw_body)


def verify_webhook_signature(raw_body: bytes, signature: str | None, *, webhook_secret: str) -> bool:
    if not signature:
        return False
    expected = webhook_signature(raw_body, webhook_secret=webhook_secret)
    return hmac.compare_digest(expected.encode("ascii"), signature.encode("utf-8", "surrogatepass"))
