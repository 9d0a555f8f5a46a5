"""Exception hierarchy shared by the pipeline, payment flow, and API layer.

Each class carries the HTTP status the API renders it with, so route handlers
can let domain errors propagate instead of translating them one by one.
"""

from __future__ import annotations


class EvalmateError(Exception):
    """Base class for expected, classified failures."""

    status_code = 500

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class AuthenticationError(EvalmateError):
    status_code = 401


class TaskNotFoundError(EvalmateError):
    status_code = 404

    def __init__(self, task_id: str) -> None:
        super().__init__("Task not found")
        self.task_id = task_id


class PayloadTooLargeError(EvalmateError):
    status_code = 413


class EvaluationInProgressError(EvalmateError):
    status_code = 409


class AlreadyUnlockedError(EvalmateError):
    status_code = 409


class DuplicatePaymentError(EvalmateError):
    """Raised by stores when a gateway payment id has already been recorded."""

    status_code = 409

    def __init__(self, gateway_payment_id: str) -> None:
        super().__init__(f"Payment {gateway_payment_id} already recorded")
        self.gateway_payment_id = gateway_payment_id


class NoAvailableModelError(EvalmateError):
    status_code = 502


class MalformedEvaluationError(EvalmateError):
    status_code = 502


class PaymentGatewayError(EvalmateError):
    status_code = 502


class PaymentVerificationError(EvalmateError):
    status_code = 400


class WebhookPayloadError(EvalmateError):
    status_code = 400
