"""Payment orders, checkout verification and webhook confirmation.

Both confirmation paths end in ``record_capture``, which is idempotent: the
gateway payment id is unique in the store, and a repeated id is treated as
already processed while the premium grant and report unlock are re-applied.
"""

from __future__ import annotations

import json
import logging
import time
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Any, NoReturn

from evalmate.errors import (
    AlreadyUnlockedError,
    DuplicatePaymentError,
    PaymentGatewayError,
    PaymentVerificationError,
    TaskNotFoundError,
    WebhookPayloadError,
)
from evalmate.payments.gateway import PaymentGateway
from evalmate.payments.signatures import verify_checkout_signature, verify_webhook_signature
from evalmate.storage.base import EvaluationStore

logger = logging.getLogger(__name__)

CAPTURED = "captured"


@dataclass(frozen=True)
class OrderDescriptor:
    id: str
    amount: int
    currency: str
    receipt: str
    key_id: str


@dataclass(frozen=True)
class VerificationResult:
    success: bool
    unlocked: bool
    message: str


def build_receipt(task_id: str, *, now_ms: int | None = None) -> str:
    """Gateway receipts are capped at 40 characters."""
    if now_ms is None:
        now_ms = int(time.time() * 1000)
    return f"t_{task_id[:8]}_{str(now_ms)[-6:]}"


def _note(notes: dict[str, Any], *names: str) -> str | None:
    for name in names:
        value = notes.get(name)
        if isinstance(value, str) and value:
            return value
    return None


def _nested_object(body: dict[str, Any], *path: str) -> dict[str, Any]:
    """Walk ``path`` through nested webhook objects. Missing or null levels read as empty."""
    current: Any = body
    for key in path:
        current = current.get(key)
        if current is None:
            return {}
        if not isinstance(current, dict):
            raise WebhookPayloadError(f"Webhook field {key!r} must be an object")
    return current


class PaymentService:
    def __init__(
        self,
        store: EvaluationStore,
        gateway: PaymentGateway,
        *,
        key_secret: str,
        webhook_secret: str = "",
        currency: str = "INR",
        report_price: int = 99_900,
    ) -> None:
        self.store = store
        self.gateway = gateway
        self._key_secret = key_secret
        self._webhook_secret = webhook_secret
        self.currency = currency
        self.report_price = report_price

    def create_order(
        self, task_id: str, *, user_id: str, amount: int | None = None
    ) -> OrderDescriptor:
        task = self.store.get_task(task_id, user_id=user_id)
        if task is None:
            raise TaskNotFoundError(task_id)
        profile = self.store.get_or_create_profile(user_id)
        if task.report_unlocked or profile.premium_user:
            raise AlreadyUnlockedError("Report already unlocked")

        receipt = build_receipt(task_id)
        order = self.gateway.create_order(
            amount=amount or self.report_price,
            currency=self.currency,
            receipt=receipt,
            notes={"task_id": task_id, "user_id": user_id},
        )
        order_id = order.get("id")
        if not isinstance(order_id, str) or not order_id:
            raise PaymentGatewayError("Payment gateway returned an order without an id")

        logger.info(
            "payment event=order_created task_id=%s user_id=%s order_id=%s receipt=%s",
            task_id,
            user_id,
            order_id,
            receipt,
        )
        return OrderDescriptor(
            id=order_id,
            amount=int(order.get("amount", amount or self.report_price)),
            currency=str(order.get("currency", self.currency)),
            receipt=str(order.get("receipt", receipt)),
            key_id=self.gateway.key_id,
        )

    def verify(
        self,
        *,
        payment_id: str,
        order_id: str,
        signature: str,
        task_id: str,
        user_id: str,
    ) -> VerificationResult:
        if not verify_checkout_signature(
            order_id=order_id,
            payment_id=payment_id,
            signature=signature,
            key_secret=self._key_secret,
        ):
            self._reject(payment_id, "signature_mismatch")
        if self.store.get_task(task_id, user_id=user_id) is None:
            self._reject(payment_id, "task_not_owned")

        try:
            payment = self.gateway.fetch_payment(payment_id)
        except PaymentGatewayError as exc:
            self._reject(payment_id, "lookup_failed", detail=exc.message)

        if payment.get("status") != CAPTURED:
            self._reject(payment_id, f"status_{payment.get('status')}")
        if payment.get("order_id") != order_id:
            self._reject(payment_id, "order_mismatch")
        notes = payment.get("notes") if isinstance(payment.get("notes"), dict) else {}
        noted_user = _note(notes, "user_id", "userId")
        if noted_user is not None and noted_user != user_id:
            self._reject(payment_id, "user_mismatch")

        self.record_capture(
            user_id=user_id,
            task_id=task_id,
            gateway_payment_id=payment_id,
            amount=int(payment.get("amount") or 0),
            currency=str(payment.get("currency") or self.currency),
        )
        return VerificationResult(
            success=True, unlocked=True, message="Payment verified and report unlocked"
        )

    def handle_webhook(self, raw_body: bytes, signature: str | None) -> dict[str, bool]:
        if self._webhook_secret:
            if not verify_webhook_signature(
                raw_body, signature, webhook_secret=self._webhook_secret
            ):
                logger.warning("payment_webhook event=rejected reason=bad_signature")
                raise WebhookPayloadError("Invalid webhook signature")
        else:
            logger.warning("payment_webhook event=unsigned reason=no_webhook_secret_configured")

        try:
            body = json.loads(raw_body.decode("utf-8"))
        except (UnicodeDecodeError, json.JSONDecodeError) as exc:
            raise WebhookPayloadError("Webhook body is not valid JSON") from exc
        if not isinstance(body, dict):
            raise WebhookPayloadError("Webhook body must be a JSON object")

        event = body.get("event")
        entity = _nested_object(body, "payload", "payment", "entity")

        if event == "payment.captured":
            self._handle_captured(entity)
        elif event == "payment.failed":
            logger.info(
                "payment_webhook event=payment_failed payment_id=%s error=%s",
                entity.get("id"),
                entity.get("error_description"),
            )
        else:
            logger.info("payment_webhook event=ignored type=%s", event)
        return {"received": True}

    def record_capture(
        self,
        *,
        user_id: str,
        task_id: str | None,
        gateway_payment_id: str,
        amount: int,
        currency: str,
    ) -> bool:
        """Persist a captured payment. Returns False when it was already recorded."""
        recorded = True
        try:
            self.store.insert_payment(
                user_id=user_id,
                task_id=task_id,
                gateway_payment_id=gateway_payment_id,
                amount=amount,
                currency=currency,
            )
        except DuplicatePaymentError:
            recorded = False
            logger.info(
                "payment event=already_processed payment_id=%s user_id=%s",
                gateway_payment_id,
                user_id,
            )

        self.store.grant_premium(user_id, since=datetime.now(UTC))
        if task_id is not None:
            self.store.unlock_task_report(task_id, user_id=user_id)

        if recorded:
            logger.info(
                "payment event=captured payment_id=%s user_id=%s task_id=%s amount=%s currency=%s",
                gateway_payment_id,
                user_id,
                task_id,
                amount,
                currency,
            )
        return recorded

    def _handle_captured(self, entity: dict[str, Any]) -> None:
        payment_id = entity.get("id")
        notes = entity.get("notes") if isinstance(entity.get("notes"), dict) else {}
        task_id = _note(notes, "task_id", "taskId")
        user_id = _note(notes, "user_id", "userId")
        if not isinstance(payment_id, str) or not payment_id or not task_id or not user_id:
            raise WebhookPayloadError("Missing payment id, task_id or user_id in webhook")

        payment = self.gateway.fetch_payment(payment_id)
        if payment.get("status") != CAPTURED:
            logger.warning(
                "payment_webhook event=not_captured payment_id=%s status=%s",
                payment_id,
                payment.get("status"),
            )
            return

        if self.store.get_task(task_id, user_id=user_id) is None:
            logger.warning(
                "payment_webhook event=task_missing payment_id=%s task_id=%s user_id=%s",
                payment_id,
                task_id,
                user_id,
            )
            task_id = None

        self.record_capture(
            user_id=user_id,
            task_id=task_id,
            gateway_payment_id=payment_id,
            amount=int(payment.get("amount") or entity.get("amount") or 0),
            currency=str(payment.get("currency") or entity.get("currency") or self.currency),
        )

    @staticmethod
    def _reject(payment_id: str, reason: str, *, detail: str | None = None) -> NoReturn:
        logger.warning(
            "payment event=verification_failed payment_id=%s reason=%s detail=%s",
            payment_id,
            reason,
            detail,
        )
        raise PaymentVerificationError("Payment not verified or not captured")
