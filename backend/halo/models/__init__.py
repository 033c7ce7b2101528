"""
Pydantic models for Halo.

Exports intent, protocol payload, payment method, order, risk and
verification models.
"""
from .intents import StructuredIntent
from .payloads import (
    ACPPayload,
    UCPIntent,
    X402Payload,
    ProtocolPayload,
    NormalizedPayload,
    HaloNormalized,
    protocol_payload_adapter,
)
from .payment_methods import (
    PaymentMethod,
    AddPaymentMethodRequest,
    VerifyPaymentMethodRequest,
    BillingAddress,
)
from .orders import Order
from .risk import RiskDecision, RiskAssessment
from .verification import (
    VerificationState,
    VerificationMethod,
    VerificationChallenge,
    VerificationResult,
)

__all__ = [
    "StructuredIntent",
    "ACPPayload",
    "UCPIntent",
    "X402Payload",
    "ProtocolPayload",
    "NormalizedPayload",
    "HaloNormalized",
    "protocol_payload_adapter",
    "PaymentMethod",
    "AddPaymentMethodRequest",
    "VerifyPaymentMethodRequest",
    "BillingAddress",
    "Order",
    "RiskDecision",
    "RiskAssessment",
    "VerificationState",
    "VerificationMethod",
    "VerificationChallenge",
    "VerificationResult",
]
