"""Payment gateway client and the premium unlock flow."""

from evalmate.payments.gateway import HTTPPaymentGateway, PaymentGateway
from evalmate.payments.service import (
    OrderDescriptor,
    PaymentService,
    VerificationResult,
    build_receipt,
)

__all__ = [
    "HTTPPaymentGateway",
    "OrderDescriptor",
    "PaymentGateway",
    "PaymentService",
    "VerificationResult",
    "build_receipt",
]
